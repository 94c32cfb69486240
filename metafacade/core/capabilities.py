"""
Edit capability check backed by an external authorization oracle.
"""

import logging
from typing import Any, Callable, Dict, Optional

AuthorizationOracle = Callable[[Any, Any], bool]


class EditCapability:
    """
    Holds the configured oracle and current user.
    With no oracle configured every check fails closed.
    """
    _logger = logging.getLogger("EditCapability")
    _oracle: Optional[AuthorizationOracle] = None
    _current_user: Any = None

    @classmethod
    def use_oracle(cls, oracle: Optional[AuthorizationOracle], current_user: Any = None) -> None:
        if oracle is not None and not callable(oracle):
            raise ValueError("Authorization oracle must be callable")
        cls._oracle = oracle
        cls._current_user = current_user
        cls._logger.info(f"Authorization oracle {'set' if oracle else 'removed'}")

    @classmethod
    def set_current_user(cls, user: Any) -> None:
        cls._current_user = user

    @classmethod
    def has_edit_capability(cls, entity_id: Any) -> bool:
        if cls._oracle is None:
            return False
        return bool(cls._oracle(cls._current_user, entity_id))

    @classmethod
    def clear(cls) -> None:
        cls._oracle = None
        cls._current_user = None

    @classmethod
    def get_registry_status(cls) -> Dict[str, Any]:
        return {"oracle_configured": cls._oracle is not None}
