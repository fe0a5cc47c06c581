"""
Sync orchestration across tool target files.

For every target file the service runs one cycle:

    read -> parse -> reconcile every block -> (sync only) render -> atomic write

Targets with a skills directory get a second job that reconciles canonical
skill directories the same way. Jobs are independent of each other, so they
are processed by a bounded thread pool. Each worker owns its outcome; the
only shared object is the SnapshotStore, whose commits are serialized.

A target's snapshot entries are committed only after the target's own
atomic rename succeeded. A crash between render and rename therefore leaves
both the target file and its snapshot at their pre-run state.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from agentsync.core.rules import rules_for_target
from agentsync.core.skills import (
    CanonicalSkill,
    classify_skill,
    next_skill_snapshot,
    pair_skills,
    remove_skill,
    write_skill,
)
from agentsync.core.sync.errors import (
    AgentSyncError,
    ConflictError,
    ParseError,
    TargetIOError,
)
from agentsync.core.sync.markers import (
    CommentStyle,
    Edit,
    build_block,
    check_body,
    detect_newline,
    parse_target,
    render_block,
    splice,
)
from agentsync.core.sync.models import (
    BlockOutcome,
    CanonicalRule,
    FileOutcome,
    SyncMode,
    SyncRunResult,
    SyncSnapshot,
    TargetFile,
    Verdict,
)
from agentsync.core.sync.reconciler import (
    Action,
    Pairing,
    action_for,
    classify,
    next_snapshot,
    pair_blocks,
)
from agentsync.core.sync.snapshots import SnapshotStore
from agentsync.utils.fs import read_text, write_atomic

if TYPE_CHECKING:
    from agentsync.core.config.models import AgentSyncConfig
    from agentsync.core.targets import TargetSpec

logger = logging.getLogger(__name__)

# (report key, outcome path, tool name, worker)
_Job = tuple[str, Path, str, Callable[[], FileOutcome]]


class SyncService:
    """
    Keep managed blocks in tool target files in line with canonical rules.

    Example:
        >>> service = SyncService.from_config(load_config(), Path("."))
        >>> result = service.check()
        >>> result.success
        True
    """

    def __init__(
        self,
        project_dir: Path,
        *,
        prefix: str,
        targets: list[TargetSpec],
        rules: list[CanonicalRule],
        store: SnapshotStore,
        skills: list[CanonicalSkill] | None = None,
        workers: int = 4,
    ) -> None:
        """
        Initialize the sync service.

        Args:
            project_dir: Root that target paths are relative to.
            prefix: Marker (dash-form) prefix of blocks this service manages.
            targets: Targets to process, in report order.
            rules: Canonical rules in declared order.
            store: Snapshot store shared by every target.
            skills: Canonical skills copied into targets with a skills directory.
            workers: Maximum number of jobs processed concurrently.
        """
        self.project_dir = project_dir.resolve()
        self.prefix = prefix
        self.targets = targets
        self.rules = rules
        self.skills = skills or []
        self.store = store
        self.workers = max(1, workers)
        self._stop = threading.Event()

    @classmethod
    def from_config(
        cls,
        config: AgentSyncConfig,
        project_dir: Path,
        target_names: list[str] | None = None,
    ) -> SyncService:
        """
        Build a service from configuration.

        Raises:
            ConfigError: On unknown targets or an unresolvable source.
            RuleLoadError: If canonical rules or skills cannot be loaded.
        """
        from agentsync.core.rules import load_rules
        from agentsync.core.skills import load_skills
        from agentsync.core.source import resolve_rules_dir, resolve_skills_dir
        from agentsync.core.targets import registry_for_config

        targets = registry_for_config(config).resolve(target_names or config.targets)
        rules = load_rules(resolve_rules_dir(config, project_dir), config.marker_prefix)
        skills: list[CanonicalSkill] = []
        if any(t.skills_dir for t in targets):
            skills = load_skills(resolve_skills_dir(config, project_dir), config.marker_prefix)
        store = SnapshotStore(project_dir / config.state_file)
        return cls(
            project_dir,
            prefix=config.marker_prefix,
            targets=targets,
            rules=rules,
            store=store,
            skills=skills,
            workers=config.workers,
        )

    def request_stop(self) -> None:
        """
        Stop scheduling new jobs; jobs already started finish.

        A stop requested before a run makes that run skip every job. The
        flag is cleared when the run returns.
        """
        self._stop.set()

    def check(self) -> SyncRunResult:
        """Report drift for every target without writing anything."""
        return self.run(SyncMode.CHECK)

    def sync(self, *, force: bool = False) -> SyncRunResult:
        """Apply every safe action; with ``force``, conflicts take the canonical side."""
        return self.run(SyncMode.SYNC, force=force)

    def run(self, mode: SyncMode, *, force: bool = False) -> SyncRunResult:
        """
        Process every target and aggregate per-file outcomes.

        A failure in one target never stops the others. On Ctrl+C the run
        waits for started jobs, marks the rest skipped and returns with
        ``interrupted`` set.
        """
        result = SyncRunResult(mode=mode)
        try:
            self.store.load()
            jobs = self._jobs(mode, force)
            if jobs:
                result.files, result.interrupted = self._execute(jobs)
        finally:
            self._stop.clear()
        logger.debug("Run finished: %s", result.summary())
        return result

    def _jobs(self, mode: SyncMode, force: bool) -> list[_Job]:
        jobs: list[_Job] = []
        for target in self.targets:
            jobs.append(
                (
                    target.name,
                    target.resolve(self.project_dir),
                    target.name,
                    lambda target=target: self._process_target(target, mode, force),
                )
            )
            skills_dir = target.resolve_skills(self.project_dir)
            if skills_dir is not None and (self.skills or skills_dir.is_dir()):
                jobs.append(
                    (
                        f"{target.name}:skills",
                        skills_dir,
                        target.name,
                        lambda target=target: self._process_skills(target, mode, force),
                    )
                )
        return jobs

    def _execute(self, jobs: list[_Job]) -> tuple[list[FileOutcome], bool]:
        outcomes: dict[str, FileOutcome] = {}
        futures: dict[Future[FileOutcome], _Job] = {}
        interrupted = False

        executor = ThreadPoolExecutor(max_workers=min(self.workers, len(jobs)))
        try:
            for job in jobs:
                futures[executor.submit(job[3])] = job
            for future in as_completed(futures):
                job = futures[future]
                outcomes[job[0]] = self._collect(future, job)
        except KeyboardInterrupt:
            logger.warning("Interrupted; waiting for started files to finish")
            interrupted = True
            self.request_stop()
            executor.shutdown(wait=True, cancel_futures=True)
            for future, job in futures.items():
                if job[0] in outcomes:
                    continue
                if future.cancelled():
                    outcomes[job[0]] = FileOutcome(path=job[1], tool=job[2], skipped=True)
                else:
                    outcomes[job[0]] = self._collect(future, job)
        finally:
            executor.shutdown(wait=True)

        ordered: list[FileOutcome] = []
        for key, path, tool, _ in jobs:
            if key not in outcomes:
                # Never submitted
                outcomes[key] = FileOutcome(path=path, tool=tool, skipped=True)
            outcome = outcomes[key]
            empty = not (outcome.blocks or outcome.failed or outcome.skipped)
            if key.endswith(":skills") and empty:
                continue
            ordered.append(outcome)
        return ordered, interrupted

    @staticmethod
    def _collect(future: Future[FileOutcome], job: _Job) -> FileOutcome:
        try:
            return future.result()
        except Exception as e:
            logger.exception("Unexpected error processing %s", job[1])
            return FileOutcome(
                path=job[1],
                tool=job[2],
                error=str(e),
                error_kind=type(e).__name__,
            )

    @staticmethod
    def _fail(outcome: FileOutcome, error: Exception) -> FileOutcome:
        outcome.error = str(error)
        outcome.error_kind = type(error).__name__
        return outcome

    # ------------------------------------------------------------------
    # Per-target cycle
    # ------------------------------------------------------------------

    def _process_target(self, target: TargetSpec, mode: SyncMode, force: bool) -> FileOutcome:
        path = target.resolve(self.project_dir)
        outcome = FileOutcome(path=path, tool=target.name)

        if self._stop.is_set():
            outcome.skipped = True
            return outcome

        rules = rules_for_target(self.rules, target.name)
        try:
            for rule in rules:
                check_body(rule.id, rule.body, target.comment_style)
        except ParseError as e:
            error = e.with_path(path)
            logger.error("Skipping %s: %s", path, error)
            return self._fail(outcome, error)

        try:
            parsed = self._read_target(target, path)
        except (ParseError, TargetIOError) as e:
            logger.warning("Skipping %s: %s", path, e)
            return self._fail(outcome, e)

        snapshots = self.store.entries_for(target.path, self.prefix)
        pairings = pair_blocks(parsed, rules, snapshots, self.prefix)
        blocks = [classify(p) for p in pairings]
        outcome.blocks = blocks

        if mode == SyncMode.CHECK:
            return outcome

        actions = [
            self._decide(b, p.rule is not None, force, path) for p, b in zip(pairings, blocks)
        ]
        new_text = self._render(parsed, pairings, actions, target.comment_style)
        entries = [
            snap
            for p, b, a in zip(pairings, blocks, actions)
            if (snap := next_snapshot(p, b, a)) is not None
        ]

        if new_text != parsed.raw_text:
            try:
                write_atomic(path, new_text)
            except OSError as e:
                error = TargetIOError(path, "write", e)
                logger.error("%s", error)
                for block in blocks:
                    block.applied = False
                return self._fail(outcome, error)
            outcome.written = True
            logger.debug("Wrote %s", path)

        self._commit(outcome, target.path, snapshots, entries)
        return outcome

    def _process_skills(self, target: TargetSpec, mode: SyncMode, force: bool) -> FileOutcome:
        skills_dir = target.resolve_skills(self.project_dir)
        assert skills_dir is not None and target.skills_dir is not None
        outcome = FileOutcome(path=skills_dir, tool=target.name)

        if self._stop.is_set():
            outcome.skipped = True
            return outcome

        snapshots = self.store.entries_for(target.skills_dir, self.prefix)
        try:
            pairings = pair_skills(skills_dir, self.skills, snapshots, self.prefix)
        except AgentSyncError as e:
            logger.warning("Skipping %s: %s", skills_dir, e)
            return self._fail(outcome, e)
        except OSError as e:
            return self._fail(outcome, TargetIOError(skills_dir, "read", e))

        blocks = [classify_skill(p, self.prefix) for p in pairings]
        outcome.blocks = blocks

        if mode == SyncMode.CHECK:
            return outcome

        entries: list[SyncSnapshot] = []
        for pairing, block in zip(pairings, blocks):
            action = self._decide(block, pairing.skill is not None, force, skills_dir)
            dest = skills_dir / pairing.name
            try:
                if action in (Action.WRITE, Action.INSERT):
                    assert pairing.skill is not None
                    write_skill(pairing.skill, dest, self.prefix)
                elif action == Action.REMOVE:
                    remove_skill(dest)
            except OSError as e:
                error = TargetIOError(dest, "write", e)
                logger.error("%s", error)
                block.applied = False
                self._fail(outcome, error)
                if pairing.snapshot is not None:
                    entries.append(pairing.snapshot)
                continue
            if action != Action.KEEP:
                outcome.written = True
                logger.debug("%s skill %s", action.value.capitalize(), dest)
            snap = next_skill_snapshot(pairing, block, action, self.prefix)
            if snap is not None:
                entries.append(snap)

        self._commit(outcome, target.skills_dir, snapshots, entries)
        return outcome

    def _commit(
        self,
        outcome: FileOutcome,
        key: str,
        before: dict[str, SyncSnapshot],
        entries: list[SyncSnapshot],
    ) -> None:
        if before == {s.id: s for s in entries}:
            return
        try:
            self.store.commit(key, self.prefix, entries)
        except OSError as e:
            error = TargetIOError(self.store.path, "write", e)
            logger.error("%s", error)
            self._fail(outcome, error)

    def _read_target(self, target: TargetSpec, path: Path) -> TargetFile:
        try:
            text = read_text(path)
        except OSError as e:
            raise TargetIOError(path, "read", e) from e
        return parse_target(
            text or "",
            path=path,
            tool=target.name,
            style=target.comment_style,
            exists=text is not None,
        )

    def _decide(self, block: BlockOutcome, has_canonical: bool, force: bool, path: Path) -> Action:
        try:
            action = action_for(block, has_canonical=has_canonical, force=force)
        except ConflictError as e:
            logger.warning("%s: %s", path, e)
            block.blocked = True
            block.warnings.append(str(e))
            return Action.KEEP

        if block.verdict == Verdict.CONFLICT:
            block.forced = True
            logger.warning("%s: forcing canonical content over '%s'", path, block.id)
        elif block.verdict == Verdict.LOCALLY_EDITED:
            message = f"'{block.id}' has local edits; keeping target content"
            logger.warning("%s: %s", path, message)
            block.warnings.append(message)

        block.applied = action != Action.KEEP
        return action

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render(
        self,
        target: TargetFile,
        pairings: list[Pairing],
        actions: list[Action],
        style: CommentStyle,
    ) -> str:
        """Render the full file: blocks replaced, inserted, or removed; other text verbatim."""
        text = target.raw_text
        newline = detect_newline(text)
        edits: list[Edit] = []

        def rendered(rule: CanonicalRule) -> str:
            block = build_block(rule.id, self.prefix, rule.body, newline)
            return render_block(block, style, newline)

        canonical = [(p, a) for p, a in zip(pairings, actions) if p.rule is not None]

        for index, (pairing, action) in enumerate(canonical):
            if action == Action.WRITE and pairing.block is not None:
                assert pairing.rule is not None
                start, end = pairing.block.span
                edits.append(Edit(start, end, rendered(pairing.rule)))
            elif action == Action.INSERT:
                assert pairing.rule is not None
                block_text = rendered(pairing.rule)
                edits.append(self._insertion(text, canonical, index, block_text, newline))

        for pairing, action in zip(pairings, actions):
            if action == Action.REMOVE and pairing.block is not None:
                start, end = pairing.block.span
                # Drop one separating blank line along with the block
                if text.startswith(newline, end):
                    end += len(newline)
                elif text[:start].endswith(newline * 2):
                    start -= len(newline)
                edits.append(Edit(start, end, ""))

        return splice(text, edits)

    @staticmethod
    def _insertion(
        text: str,
        canonical: list[tuple[Pairing, Action]],
        index: int,
        block_text: str,
        newline: str,
    ) -> Edit:
        """
        Place a new block at its canonical-declared position.

        After the nearest preceding canonical block present in the file,
        else before the nearest following one, else at end of file.
        """
        for pairing, _ in reversed(canonical[:index]):
            if pairing.block is not None:
                end = pairing.block.span[1]
                lead = newline if end > 0 and not text[:end].endswith("\n") else ""
                return Edit(end, end, lead + newline + block_text, order=index)

        for pairing, _ in canonical[index + 1 :]:
            if pairing.block is not None:
                start = pairing.block.span[0]
                return Edit(start, start, block_text + newline, order=index)

        # No canonical block exists yet, so every new block is appended in order.
        if index > 0:
            lead = newline
        elif not text or text.endswith("\n\n") or text.endswith(newline * 2):
            lead = ""
        elif text.endswith("\n"):
            lead = newline
        else:
            lead = newline * 2
        return Edit(len(text), len(text), lead + block_text, order=index)


__all__ = ["SyncService"]
