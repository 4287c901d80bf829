"""Action registry and dispatcher: maps action kinds to handlers and runs them."""

import inspect
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from ..models.core import ActionDefinition, ActionInfo, ActionResult
from .error_recovery import NO_RETRY, RetryConfig, execute_with_retry
from .exceptions import (
    ActionExecutionError,
    ActionRegistryError,
    ActionTimeoutError,
    ExecutionCancelled,
    UnknownActionType,
)
from .interpolation import interpolate
from .logging import get_logger

logger = get_logger(__name__)

ActionHandler = Callable[[Dict[str, Any]], Any]


class RegisteredAction:
    """A handler together with its description and optional parameter schema."""

    def __init__(self, action_type: str, handler: ActionHandler, description: str = "",
                 params_model: Optional[Type[BaseModel]] = None):
        self.action_type = action_type
        self.handler = handler
        self.description = description
        self.params_model = params_model

    def to_info(self) -> ActionInfo:
        return ActionInfo(
            type=self.action_type,
            description=self.description,
            has_schema=self.params_model is not None
        )


class ActionRegistry:
    """Registry of action handlers keyed by action kind.

    New integrations are added by registering a handler; the dispatcher never
    special-cases a kind.
    """

    def __init__(self):
        self._actions: Dict[str, RegisteredAction] = {}
        self._lock = threading.RLock()

    def register(self, action_type: str, handler: ActionHandler, description: str = "",
                 params_model: Optional[Type[BaseModel]] = None, replace: bool = False) -> None:
        """Register a handler for an action kind.

        Args:
            action_type: Kind tag actions use to select this handler
            handler: Callable receiving the interpolated parameters
            description: Optional human readable description
            params_model: Optional pydantic model the declared parameters must satisfy
            replace: Allow overriding an existing registration

        Raises:
            ActionRegistryError: If the kind is empty, taken, or the handler is not callable
        """
        if not action_type or not action_type.strip():
            raise ActionRegistryError("Action type cannot be empty", operation="register")

        action_type = action_type.strip()

        if not callable(handler):
            raise ActionRegistryError(
                f"Handler for action '{action_type}' must be callable",
                action_type=action_type,
                operation="register"
            )

        try:
            sig = inspect.signature(handler)
            if len(sig.parameters) == 0:
                logger.warning(f"Handler for '{action_type}' takes no parameters - it will not receive its action parameters")
        except (ValueError, TypeError):
            # Builtins and some C callables have no inspectable signature.
            pass

        with self._lock:
            if action_type in self._actions and not replace:
                raise ActionRegistryError(
                    f"Action '{action_type}' is already registered",
                    action_type=action_type,
                    operation="register"
                )
            self._actions[action_type] = RegisteredAction(
                action_type, handler, description.strip() if description else "", params_model
            )

        logger.info(f"Registered action handler '{action_type}'")

    def unregister(self, action_type: str) -> bool:
        """Remove a handler. Returns False if the kind was not registered."""
        with self._lock:
            removed = self._actions.pop(action_type, None)
        if removed:
            logger.info(f"Unregistered action handler '{action_type}'")
        return removed is not None

    def get(self, action_type: str) -> RegisteredAction:
        """Look up a registration, raising UnknownActionType if absent."""
        with self._lock:
            registered = self._actions.get(action_type)
        if registered is None:
            raise UnknownActionType(action_type)
        return registered

    def get_handler(self, action_type: str) -> ActionHandler:
        return self.get(action_type).handler

    def has_action(self, action_type: str) -> bool:
        with self._lock:
            return action_type in self._actions

    def list_actions(self) -> Dict[str, str]:
        """Map of registered kinds to their descriptions."""
        with self._lock:
            return {name: entry.description for name, entry in sorted(self._actions.items())}

    def get_action_info(self) -> List[ActionInfo]:
        with self._lock:
            return [entry.to_info() for _, entry in sorted(self._actions.items())]

    def validate(self, action: Union[ActionDefinition, Mapping[str, Any]]) -> List[str]:
        """
        Check a declared action against the registry.

        Returns a list of problems; empty when the action is acceptable. The
        declared (not yet interpolated) parameters are validated, so schemas
        must accept template strings where a template may appear.
        """
        if not isinstance(action, ActionDefinition):
            try:
                action = ActionDefinition.model_validate(action)
            except ValidationError as e:
                return [f"Malformed action: {e.errors()[0].get('msg', str(e))}"]

        with self._lock:
            registered = self._actions.get(action.type)
        if registered is None:
            return [f"Unknown action type: {action.type}"]
        if registered.params_model is None:
            return []

        try:
            registered.params_model.model_validate(action.parameters)
        except ValidationError as e:
            return [
                f"Action '{action.type}' parameter '{'.'.join(str(p) for p in err['loc'])}': {err['msg']}"
                for err in e.errors()
            ]
        return []


class ActionDispatcher:
    """Runs one action: interpolate parameters, find the handler, invoke it, wrap the result."""

    def __init__(self, registry: ActionRegistry, timeout: float = 30.0,
                 retry_config: Optional[RetryConfig] = None, max_workers: int = 32,
                 poll_interval: float = 0.05):
        """Initialize the dispatcher.

        Args:
            registry: Registry used to resolve action kinds
            timeout: Per-action time budget in seconds
            retry_config: Retry policy around handler calls (default: single attempt)
            max_workers: Size of the pool handlers run on
            poll_interval: How often a waiting dispatch checks for cancellation
        """
        if timeout <= 0:
            raise ValueError("Action timeout must be positive")
        self.registry = registry
        self.timeout = timeout
        self.retry_config = retry_config or NO_RETRY
        self.poll_interval = poll_interval
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="action")

    def run(self, action: Union[ActionDefinition, Mapping[str, Any]], context: Mapping[str, Any],
            cancel_event: Optional[threading.Event] = None,
            action_index: Optional[int] = None) -> ActionResult:
        """
        Dispatch a single action.

        Raises:
            UnknownActionType: If no handler is registered for the action's kind
            ActionExecutionError: If the handler fails or exceeds the timeout
            ExecutionCancelled: If ``cancel_event`` is set while waiting
        """
        if not isinstance(action, ActionDefinition):
            try:
                action = ActionDefinition.model_validate(action)
            except ValidationError as e:
                raise ActionExecutionError(
                    f"Malformed action definition: {e}",
                    action_index=action_index,
                    recoverable=False
                )

        params = interpolate(action.parameters, context)
        registered = self.registry.get(action.type)

        logger.debug(f"Dispatching action '{action.type}' (index={action_index})")
        start_time = time.time()

        payload = execute_with_retry(
            lambda: self._invoke(registered, params, cancel_event, action_index),
            self.retry_config,
            operation=f"action:{action.type}"
        )

        logger.debug(f"Action '{action.type}' completed in {time.time() - start_time:.3f}s")
        return ActionResult(type=action.type, result=payload)

    def _invoke(self, registered: RegisteredAction, params: Dict[str, Any],
                cancel_event: Optional[threading.Event], action_index: Optional[int]) -> Any:
        if cancel_event is not None and cancel_event.is_set():
            raise ExecutionCancelled(action_type=registered.action_type)

        action_type = registered.action_type
        start_time = time.time()
        try:
            future = self._executor.submit(registered.handler, params)
        except RuntimeError as e:
            raise ActionExecutionError(
                f"Action '{action_type}' could not be scheduled: {e}",
                action_type=action_type,
                action_index=action_index,
                recoverable=False
            ) from e
        deadline = time.monotonic() + self.timeout

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise ActionTimeoutError(action_type, self.timeout, action_index=action_index)

            wait = min(remaining, self.poll_interval) if cancel_event is not None else remaining
            try:
                return future.result(timeout=wait)
            except FuturesTimeoutError:
                if not future.done():
                    if cancel_event is not None and cancel_event.is_set():
                        future.cancel()
                        raise ExecutionCancelled(action_type=action_type)
                    continue
                # The handler itself raised a TimeoutError.
                error = future.exception()
                raise ActionExecutionError(
                    f"Action '{action_type}' failed: {error}",
                    action_type=action_type,
                    action_index=action_index,
                    execution_time=time.time() - start_time
                ) from error
            except ActionExecutionError as e:
                if e.action_type is None:
                    e.action_type = action_type
                    e.add_context(action_type=action_type)
                if e.action_index is None and action_index is not None:
                    e.action_index = action_index
                    e.add_context(action_index=action_index)
                raise
            except Exception as e:
                raise ActionExecutionError(
                    f"Action '{action_type}' failed: {e}",
                    action_type=action_type,
                    action_index=action_index,
                    execution_time=time.time() - start_time
                ) from e

    def shutdown(self) -> None:
        """Stop accepting work and drop queued handler calls."""
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Action dispatcher shut down")
