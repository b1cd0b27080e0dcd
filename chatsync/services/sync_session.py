import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from chatsync.models.chat import ChatSnapshot
from chatsync.repositories.base import ChatStore, Subscription
from chatsync.schemas.chat import ChatPreview, Identity, SessionState
from chatsync.services.chat_projector import ChatProjector
from chatsync.utils.errors import ChatSyncError, SubscriptionError


logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], Awaitable[None]]


class SyncSession:
    """Live chat list of one identity.

    Owns at most one store subscription. Every subscription is opened under a
    fresh generation token and its callbacks only publish while that token is
    still current, so a torn-down subscription (or a projection still running
    when it was torn down) can never overwrite newer state.
    """

    def __init__(self, chat_store: ChatStore, projector: ChatProjector) -> None:
        self._chat_store = chat_store
        self._projector = projector
        self._lock = asyncio.Lock()
        self._listeners: List[StateListener] = []
        self._subscription: Optional[Subscription] = None
        self._generation: Optional[object] = None
        self._identity: Optional[Identity] = None

        self.projection: Tuple[ChatPreview, ...] = ()
        self.is_loading = False
        self.error: Optional[ChatSyncError] = None

    async def __aenter__(self) -> "SyncSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def state(self) -> SessionState:
        return SessionState(
            chats=list(self.projection),
            is_loading=self.is_loading,
            error=str(self.error) if self.error else None,
        )

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    async def start(self, identity: Optional[Identity]) -> None:
        async with self._lock:
            if (
                identity is not None
                and self._same_identity(identity)
                and self.active
            ):
                return

            await self._teardown()
            self._identity = identity

            if identity is None or not identity.user_id:
                self.projection = ()
                self.is_loading = False
                self.error = None
                await self._publish()
                return

            logger.info("Opening chat subscription for %s", identity.user_id)
            generation = object()
            self._generation = generation
            self.is_loading = True
            self.error = None
            await self._publish()

            async def on_snapshot(snapshot: ChatSnapshot) -> None:
                await self._handle_snapshot(generation, identity, snapshot)

            async def on_error(error: SubscriptionError) -> None:
                await self._handle_error(generation, error)

            try:
                self._subscription = await self._chat_store.subscribe_for_user(
                    identity.user_id, on_snapshot, on_error
                )
            except Exception as exc:
                await self._handle_error(generation, SubscriptionError(f"Chat subscription failed: {exc}"))

    async def stop(self) -> None:
        async with self._lock:
            await self._teardown()

    async def _teardown(self) -> None:
        # invalidate first: anything still in flight for the old token is dropped
        self._generation = None
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.cancel()
            logger.info("Chat subscription closed")

    def _same_identity(self, identity: Identity) -> bool:
        current = self._identity
        return (
            current is not None
            and current.user_id == identity.user_id
            and current.image == identity.image
        )

    async def _handle_snapshot(self, generation: object, identity: Identity, snapshot: ChatSnapshot) -> None:
        if generation is not self._generation:
            return
        logger.debug("Found %d chats for %s", len(snapshot), identity.user_id)
        try:
            previews = await self._projector.project(snapshot, identity)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error processing chats for %s", identity.user_id)
            if generation is self._generation:
                self.is_loading = False
                await self._publish()
            return

        if generation is not self._generation:
            return
        self.projection = tuple(previews)
        self.is_loading = False
        await self._publish()

    async def _handle_error(self, generation: object, error: SubscriptionError) -> None:
        if generation is not self._generation:
            return
        logger.error("Chat listener error: %s", error)
        self.error = error
        self.is_loading = False
        await self._publish()

    async def _publish(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                await listener(state)
            except Exception:
                logger.exception("Session listener failed")
