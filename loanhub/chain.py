"""
chain.py - Serialized Host for Platform Components

The Chain is the hosting environment every component is bound to. It is the
only place where component state changes are committed or discarded.

Key responsibilities:
    - Owns the height counter (the time axis for deadlines and voting windows)
    - Runs each public operation as one atomic unit of work
    - Lets nested cross-component calls join the caller's unit of work, with
      savepoints so a failed nested call leaves no partial writes behind
    - Converts domain errors into tagged OperationResults at the boundary
    - Records every committed mutating operation in the transaction log
"""

from __future__ import annotations
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple

from .core import (
    AccountId, LoanHubError, NotAuthorized, OperationResult, Paused,
    StateChange, Transaction, ZeroAddress,
    validate_account,
)


_MISSING = object()


class Table:
    """
    Key-value map owned by one component.

    Reads are direct. Writes go through the owning Chain so they can be
    journaled and rolled back; writing outside of an operation is an error.
    Stored values should be immutable (ints, bools, strings, frozen
    dataclasses) so the journal can restore them without copying.
    """

    def __init__(self, chain: Chain, name: str, initial: Optional[Dict[Any, Any]] = None):
        self._chain = chain
        self.name = name
        self._rows: Dict[Any, Any] = dict(initial or {})

    def get(self, key: Any, default: Any = None) -> Any:
        return self._rows.get(key, default)

    def __getitem__(self, key: Any) -> Any:
        return self._rows[key]

    def __contains__(self, key: Any) -> bool:
        return key in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def keys(self) -> List[Any]:
        return list(self._rows.keys())

    def items(self) -> List[Tuple[Any, Any]]:
        return list(self._rows.items())

    def values(self) -> List[Any]:
        return list(self._rows.values())

    def put(self, key: Any, value: Any) -> None:
        self._chain._record_write(self, key, value)

    def _restore(self, key: Any, old: Any) -> None:
        if old is _MISSING:
            self._rows.pop(key, None)
        else:
            self._rows[key] = old

    def __repr__(self) -> str:
        return f"Table({self.name}, {len(self._rows)} rows)"


class Journal:
    """Ordered record of writes made by the operation in flight."""

    def __init__(self):
        self.entries: List[Tuple[Table, Any, Any, Any]] = []

    def mark(self) -> int:
        return len(self.entries)

    def record(self, table: Table, key: Any, old: Any, new: Any) -> None:
        self.entries.append((table, key, old, new))

    def rollback_to(self, mark: int) -> None:
        """Undo writes newer than ``mark``, newest first."""
        while len(self.entries) > mark:
            table, key, old, _ = self.entries.pop()
            table._restore(key, old)

    def state_changes(self) -> Tuple[StateChange, ...]:
        return tuple(
            StateChange(
                table=table.name,
                key=key,
                old=None if old is _MISSING else old,
                new=new,
            )
            for table, key, old, new in self.entries
        )


class Chain:
    """
    Serial execution host with height, unit-of-work boundary and audit trail.

    Design Principles:
        - One operation at a time: execute() either commits every write the
          operation made (including nested calls into other components) or
          none of them.
        - Always logs: every committed operation that wrote state is appended
          to transaction_log. Read-only and rejected operations are not.
        - Explicit time: height only moves through advance()/advance_to().

    Thread Safety:
        Not thread-safe. Serial execution is the model, not an optimisation.

    Example:
        chain = Chain("main", initial_height=1000)
        registry = LoanRegistry(chain, "registry", admin="ops")
        result = registry.create_loan("ops", "alice", 1000, 500, 43200)
        assert result.ok and result.value == 1
    """

    def __init__(self, name: str = "main", initial_height: int = 0, verbose: bool = True):
        """
        Create a chain.

        Args:
            name: Chain identifier
            initial_height: Starting height (default: 0)
            verbose: Print one line per applied or rejected operation (default: True)
        """
        if initial_height < 0:
            raise ValueError(f"initial_height must be non-negative, got {initial_height}")
        self.name = name
        self.verbose = verbose
        self.transaction_log: List[Transaction] = []
        self._height = initial_height
        self._tables: Dict[str, Table] = {}
        self._components: Dict[AccountId, Any] = {}
        self._journal: Optional[Journal] = None
        self._next_sequence = 0

    # ========================================================================
    # HEIGHT
    # ========================================================================

    @property
    def height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move height forward by ``blocks`` and return the new height."""
        if blocks < 0:
            raise ValueError(f"Cannot move height backwards by {blocks}")
        return self.advance_to(self._height + blocks)

    def advance_to(self, height: int) -> int:
        """
        Set height to ``height``.

        Raises:
            ValueError: If height is below the current height, or an
                operation is in flight
        """
        if height < self._height:
            raise ValueError(f"Cannot move height backwards: {height} < {self._height}")
        if self._journal is not None:
            raise ValueError("Cannot advance height during an operation")
        self._height = height
        return self._height

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_component(self, component: Any) -> None:
        component_id = component.component_id
        if component_id in self._components:
            raise ValueError(f"Component {component_id} already registered")
        self._components[component_id] = component

    def get_component(self, component_id: AccountId) -> Any:
        return self._components.get(component_id)

    def list_components(self) -> List[AccountId]:
        return sorted(self._components.keys())

    def table(self, name: str, initial: Optional[Dict[Any, Any]] = None) -> Table:
        """Create and register a journaled table. Names are unique per chain."""
        if name in self._tables:
            raise ValueError(f"Table {name} already registered")
        table = Table(self, name, initial)
        self._tables[name] = table
        return table

    def snapshot(self) -> Dict[str, Dict[Any, Any]]:
        """Copy of every table's rows, keyed by table name."""
        return {name: dict(table._rows) for name, table in self._tables.items()}

    # ========================================================================
    # EXECUTION
    # ========================================================================

    @property
    def in_operation(self) -> bool:
        return self._journal is not None

    def execute(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> OperationResult:
        """
        Run ``fn`` as one atomic operation.

        At top level a fresh journal is opened; on a LoanHubError every write
        is rolled back and a failed result is returned. When called while
        another operation is in flight (a cross-component call) the work joins
        that operation's journal behind a savepoint: a failure rolls back only
        the nested writes and is returned to the caller, who decides whether
        to abort (typically via ``result.unwrap()``).

        Any other exception rolls back and propagates.
        """
        if self._journal is not None:
            return self._execute_nested(operation, fn, args, kwargs)

        journal = self._journal = Journal()
        try:
            value = fn(*args, **kwargs)
        except LoanHubError as exc:
            journal.rollback_to(0)
            if self.verbose:
                print(f"✗ REJECTED: {operation}: {exc.kind}: {exc}")
            return OperationResult.failure(operation, exc)
        except BaseException:
            journal.rollback_to(0)
            raise
        finally:
            self._journal = None

        self._commit(operation, journal)
        return OperationResult.success(operation, value)

    def query(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> OperationResult:
        """Run a read-only ``fn``. Domain errors become a failed result; nothing is logged."""
        try:
            return OperationResult.success(operation, fn(*args, **kwargs))
        except LoanHubError as exc:
            return OperationResult.failure(operation, exc)

    def _execute_nested(self, operation: str, fn: Callable[..., Any], args, kwargs) -> OperationResult:
        journal = self._journal
        mark = journal.mark()
        try:
            value = fn(*args, **kwargs)
        except LoanHubError as exc:
            journal.rollback_to(mark)
            return OperationResult.failure(operation, exc)
        return OperationResult.success(operation, value)

    def _commit(self, operation: str, journal: Journal) -> None:
        if not journal.entries:
            return
        tx = Transaction(
            sequence_number=self._next_sequence,
            height=self._height,
            operation=operation,
            state_changes=journal.state_changes(),
            chain_name=self.name,
        )
        self._next_sequence += 1
        self.transaction_log.append(tx)
        if self.verbose:
            print(f"✓ APPLIED: {operation} (#{tx.sequence_number}, h={tx.height}, {len(tx.state_changes)} changes)")

    def _record_write(self, table: Table, key: Any, value: Any) -> None:
        if self._journal is None:
            raise LoanHubError(f"Write to {table.name}[{key!r}] outside of an operation")
        old = table._rows.get(key, _MISSING)
        self._journal.record(table, key, old, value)
        table._rows[key] = value


def atomic_operation(method: Callable[..., Any]) -> Callable[..., OperationResult]:
    """
    Run a component method through its chain as one operation.

    The wrapped method raises LoanHubError subclasses to reject; callers
    receive an OperationResult named "<component_id>.<method>".
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        return self.chain.execute(f"{self.component_id}.{method.__name__}", method, self, *args, **kwargs)

    return wrapper


def read_operation(method: Callable[..., Any]) -> Callable[..., OperationResult]:
    """Like atomic_operation, for methods that never write."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        return self.chain.query(f"{self.component_id}.{method.__name__}", method, self, *args, **kwargs)

    return wrapper


class Component:
    """
    Base class for a platform component bound to a Chain.

    Provides the administrative surface shared by every component:
    an administrator account, a pause flag gating all mutating operations,
    and admin hand-over. Settings live in a journaled table so they roll
    back with everything else.
    """

    def __init__(self, chain: Chain, component_id: AccountId, admin: AccountId):
        if not validate_account(component_id):
            raise ValueError(f"Invalid component id {component_id!r}")
        if not validate_account(admin):
            raise ValueError(f"Invalid admin account {admin!r}")
        self.chain = chain
        self.component_id = component_id
        self._settings = self._table("settings", {"admin": admin, "paused": False})
        chain.register_component(self)

    def _table(self, name: str, initial: Optional[Dict[Any, Any]] = None) -> Table:
        return self.chain.table(f"{self.component_id}.{name}", initial)

    @property
    def verbose(self) -> bool:
        return self.chain.verbose

    def get_admin(self) -> AccountId:
        return self._settings["admin"]

    def is_admin(self, caller: AccountId) -> bool:
        return caller == self._settings["admin"]

    def is_paused(self) -> bool:
        return self._settings["paused"]

    def _require_admin(self, caller: AccountId) -> None:
        if not self.is_admin(caller):
            raise NotAuthorized(f"{caller} is not the administrator of {self.component_id}")

    def _require_not_paused(self) -> None:
        if self._settings["paused"]:
            raise Paused(f"{self.component_id} is paused")

    @atomic_operation
    def set_paused(self, caller: AccountId, paused: bool) -> bool:
        self._require_admin(caller)
        self._settings.put("paused", bool(paused))
        return bool(paused)

    @atomic_operation
    def transfer_admin(self, caller: AccountId, new_admin: AccountId) -> bool:
        self._require_admin(caller)
        if not validate_account(new_admin):
            raise ZeroAddress(f"Invalid admin account {new_admin!r}")
        self._settings.put("admin", new_admin)
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.component_id})"
