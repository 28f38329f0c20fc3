"""
Post-mutation pipeline.

After the store commits a change to its state, the mutation flows through a
chain of stages. The default chain is validate -> persist -> emit, so
listeners only ever hear about state that has been validated and written.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from .events import CartEventBus
from .models import CartEventType, CartState
from .storage import CartPersistence
from .validator import CartValidator


@dataclass
class Mutation:
    """A committed change travelling through the pipeline."""
    state: CartState
    event_type: Optional[CartEventType] = None  # None: no event for this change
    data: Dict[str, Any] = field(default_factory=dict)
    persisted: Optional[bool] = None


Stage = Callable[[Mutation], Awaitable[None]]


class ValidateStage:
    def __init__(self, validator: CartValidator):
        self.validator = validator

    async def __call__(self, mutation: Mutation) -> None:
        state = mutation.state
        state.validation = self.validator.validate(state.items, state.applied_discounts)


class PersistStage:
    """Writes the snapshot. Failures are already swallowed by CartPersistence."""

    def __init__(self, persistence: CartPersistence):
        self.persistence = persistence

    async def __call__(self, mutation: Mutation) -> None:
        mutation.persisted = await self.persistence.save(mutation.state)


class EmitStage:
    def __init__(self, events: CartEventBus):
        self.events = events

    async def __call__(self, mutation: Mutation) -> None:
        if mutation.event_type is not None:
            await self.events.emit(mutation.event_type, mutation.data)


class MutationPipeline:
    """
    Run stages in order for every committed mutation.

    `stages` run while the store still holds its lock. `publish_stages` run
    once the lock is released, so a listener may call back into the store
    (e.g. adjust a quantity) without waiting on its own caller.
    """

    def __init__(self, stages: Sequence[Stage], publish_stages: Sequence[Stage] = ()):
        self.stages = list(stages)
        self.publish_stages = list(publish_stages)

    @classmethod
    def default(
        cls,
        validator: CartValidator,
        events: CartEventBus,
        persistence: Optional[CartPersistence] = None,
    ) -> "MutationPipeline":
        stages: list = [ValidateStage(validator)]
        if persistence is not None:
            stages.append(PersistStage(persistence))
        return cls(stages, [EmitStage(events)])

    async def run(self, mutation: Mutation) -> Mutation:
        for stage in self.stages:
            await stage(mutation)
        return mutation

    async def publish(self, mutation: Mutation) -> None:
        for stage in self.publish_stages:
            await stage(mutation)
