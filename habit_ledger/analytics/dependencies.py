"""
Habit dependencies: prerequisites, triggers and suggested chains.

Dependency edges are kept in their own JSON file beside the ledger. Checking
them is read-only over completion histories; nothing here writes to the
ledger store.
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from itertools import combinations
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ..core.exceptions import NotFoundError, StorageError, ValidationError
from ..core.models import ConditionType, Habit, HabitDependency
from ..utils.date import DateLike, to_date, utc_now
from ..utils.io import safe_read_json, safe_write_json
from .streaks import calculate_streak, completed_dates

DEPENDENCY_FILE_VERSION = 1
MIN_CHAIN_OCCURRENCES = 5
FULL_CONFIDENCE_OCCURRENCES = 10
MAX_CHAIN_SUGGESTIONS = 5


@dataclass
class DependencyValidation:
    """Outcome of checking a habit's prerequisites on one day."""

    is_valid: bool = True
    blocked_by: List[str] = field(default_factory=list)
    required_completions: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "blockedBy": list(self.blocked_by),
            "requiredCompletions": list(self.required_completions),
            "warnings": list(self.warnings),
        }


@dataclass
class DependencyGraph:
    nodes: List[Dict[str, str]]
    edges: List[Dict[str, str]]

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": self.nodes, "edges": self.edges}


@dataclass
class ChainSuggestion:
    chain: List[str]
    occurrences: int
    confidence: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain": list(self.chain),
            "occurrences": self.occurrences,
            "confidence": self.confidence,
            "reason": self.reason,
        }


def _owner(item: Any) -> Optional[str]:
    return item.get("habitUuid") if isinstance(item, dict) else getattr(item, "habit_uuid", None)


def _history(habit_uuid: str, completions: Iterable[Any]) -> List[Any]:
    return [item for item in completions if _owner(item) == habit_uuid]


def suggest_habit_chains(habits: List[Habit], completions: Iterable[Any],
                         min_occurrences: int = MIN_CHAIN_OCCURRENCES,
                         limit: int = MAX_CHAIN_SUGGESTIONS) -> List[ChainSuggestion]:
    """
    Suggest pairs of habits that are often completed on the same day.

    Pairs need at least ``min_occurrences`` shared days; confidence grows
    linearly and reaches 1.0 at ten shared days. Within a pair the habit
    listed first in ``habits`` leads the chain.
    """
    order = {habit.uuid: index for index, habit in enumerate(habits)}
    names = {habit.uuid: habit.name for habit in habits}

    by_day: Dict[date, Set[str]] = {}
    for item in completions:
        owner = _owner(item)
        if owner not in order:
            continue
        for day in completed_dates([item]):
            by_day.setdefault(day, set()).add(owner)

    together: Counter = Counter()
    for owners in by_day.values():
        for pair in combinations(sorted(owners, key=order.get), 2):
            together[pair] += 1

    suggestions = [
        ChainSuggestion(
            chain=[first, second],
            occurrences=count,
            confidence=min(count / FULL_CONFIDENCE_OCCURRENCES, 1.0),
            reason=f"Often completed together: {names[first]} → {names[second]}",
        )
        for (first, second), count in together.items()
        if count >= min_occurrences
    ]
    suggestions.sort(key=lambda s: (-s.occurrences, order[s.chain[0]], order[s.chain[1]]))
    return suggestions[:limit]


class DependencyService:
    """Stores dependency edges between habits and evaluates them."""

    def __init__(self, path: Optional[str] = None,
                 clock: Optional[Callable[[], Any]] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            path: JSON file holding the edges; None keeps them in memory
            clock: Callable returning the current aware datetime
            logger: Optional logger instance
        """
        self.path = path
        self.clock = clock or utc_now
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._dependencies: List[HabitDependency] = self._load()

    def _load(self) -> List[HabitDependency]:
        if not self.path:
            return []

        data = safe_read_json(self.path, default={"dependencies": []})
        loaded = []
        for raw in data.get("dependencies", []):
            try:
                loaded.append(HabitDependency.from_dict(raw))
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                self.logger.warning("Dropping unreadable dependency: %s", exc)
        return loaded

    def _save(self) -> None:
        if not self.path:
            return
        payload = {
            "version": DEPENDENCY_FILE_VERSION,
            "dependencies": [dependency.to_dict() for dependency in self._dependencies],
        }
        if not safe_write_json(self.path, payload):
            raise StorageError(f"Failed to persist dependencies to {self.path}")

    # Edges

    def list_dependencies(self, habit_uuid: Optional[str] = None,
                          active_only: bool = False) -> List[HabitDependency]:
        """Edges touching ``habit_uuid`` (as dependent or parent), or all edges."""
        with self._lock:
            edges = list(self._dependencies)
        if habit_uuid is not None:
            edges = [d for d in edges
                     if habit_uuid in (d.dependent_habit_uuid, d.parent_habit_uuid)]
        if active_only:
            edges = [d for d in edges if d.is_active]
        return edges

    def add_dependency(self, dependent_uuid: str, parent_uuid: str,
                       condition_type: Any = ConditionType.REQUIRES_COMPLETION,
                       condition_value: Optional[int] = None,
                       is_active: bool = True) -> HabitDependency:
        """
        Make ``dependent_uuid`` depend on ``parent_uuid``.

        Raises:
            ValidationError: If the edge is malformed or would close a cycle
            StorageError: If the dependency file cannot be written
        """
        dependency = HabitDependency(
            dependent_habit_uuid=dependent_uuid,
            parent_habit_uuid=parent_uuid,
            condition_type=condition_type,
            condition_value=condition_value,
            is_active=is_active,
            created_at=self.clock(),
        )

        with self._lock:
            if self._would_create_cycle(dependent_uuid, parent_uuid):
                raise ValidationError("Cannot create dependency: would result in circular reference")
            self._dependencies.append(dependency)
            try:
                self._save()
            except StorageError:
                self._dependencies.remove(dependency)
                raise

        self.logger.info("Dependency added: %s %s %s", parent_uuid, dependency.label.lower(),
                         dependent_uuid)
        return dependency

    def remove_dependency(self, dependency_id: str) -> bool:
        with self._lock:
            kept = [d for d in self._dependencies if d.id != dependency_id]
            if len(kept) == len(self._dependencies):
                return False
            self._dependencies = kept
            self._save()
        return True

    def set_active(self, dependency_id: str, active: bool) -> HabitDependency:
        with self._lock:
            for dependency in self._dependencies:
                if dependency.id == dependency_id:
                    dependency.is_active = bool(active)
                    self._save()
                    return dependency
        raise NotFoundError(dependency_id, entity="dependency")

    def forget_habit(self, habit_uuid: str) -> int:
        """Drop every edge touching a deleted habit; returns how many went."""
        with self._lock:
            kept = [d for d in self._dependencies
                    if habit_uuid not in (d.dependent_habit_uuid, d.parent_habit_uuid)]
            removed = len(self._dependencies) - len(kept)
            if removed:
                self._dependencies = kept
                self._save()
        return removed

    def _would_create_cycle(self, dependent_uuid: str, parent_uuid: str) -> bool:
        # walk up from the new parent; reaching the dependent closes a loop
        visited: Set[str] = set()
        stack = [parent_uuid]
        while stack:
            current = stack.pop()
            if current == dependent_uuid:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(d.parent_habit_uuid for d in self._dependencies
                         if d.dependent_habit_uuid == current)
        return False

    # Evaluation

    def _satisfied(self, dependency: HabitDependency, completions: List[Any], target: date) -> bool:
        parent = _history(dependency.parent_habit_uuid, completions)
        if dependency.condition_type in (ConditionType.REQUIRES_COMPLETION,
                                         ConditionType.BLOCKS_IF_INCOMPLETE):
            return target in completed_dates(parent)
        if dependency.condition_type == ConditionType.REQUIRES_STREAK:
            return calculate_streak(parent, target) >= (dependency.condition_value or 1)
        return True

    def validate_completion(self, habit_uuid: str, completions: Iterable[Any],
                            target: DateLike) -> DependencyValidation:
        """
        Check whether ``habit_uuid`` may be completed on ``target``.

        Streak requirements count the parent's streak as of ``target``.
        """
        target_day = to_date(target)
        completions = list(completions)
        result = DependencyValidation()

        for dependency in self.list_dependencies(active_only=True):
            if dependency.dependent_habit_uuid != habit_uuid:
                continue
            if self._satisfied(dependency, completions, target_day):
                continue

            result.is_valid = False
            result.blocked_by.append(dependency.parent_habit_uuid)
            if dependency.condition_type == ConditionType.REQUIRES_COMPLETION:
                result.required_completions.append(dependency.parent_habit_uuid)
            elif dependency.condition_type == ConditionType.REQUIRES_STREAK:
                result.warnings.append(
                    f"Requires {dependency.condition_value or 1}-day streak of parent habit"
                )
            elif dependency.condition_type == ConditionType.BLOCKS_IF_INCOMPLETE:
                result.warnings.append("Blocked until parent habit is completed")

        return result

    def get_triggered_habits(self, completed_uuid: str) -> List[str]:
        """Habits that completing ``completed_uuid`` should prompt next."""
        return [
            d.dependent_habit_uuid for d in self.list_dependencies(active_only=True)
            if d.parent_habit_uuid == completed_uuid
            and d.condition_type == ConditionType.TRIGGERS_ON_COMPLETION
        ]

    def get_dependency_graph(self, habits: List[Habit]) -> DependencyGraph:
        nodes = [{"id": habit.uuid, "name": habit.name, "type": "habit"} for habit in habits]
        edges = [
            {
                "from": d.parent_habit_uuid,
                "to": d.dependent_habit_uuid,
                "type": d.condition_type.value,
                "label": d.label,
            }
            for d in self.list_dependencies(active_only=True)
        ]
        return DependencyGraph(nodes=nodes, edges=edges)
