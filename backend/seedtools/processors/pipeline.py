"""
UploadPipeline for seed-tools

Runs one input path through every selected tracker, one tracker at a time:

    1. ledger    an accepted upload already recorded for (input, tracker) whose
                 .torrent still exists goes straight to injection
    2. dedupe    a copy already on the tracker is downloaded and injected instead
                 (DuplicateDetected redirects the run; nothing is built or uploaded)
    3. mapping   a release the tracker has no category for fails before anything is built
    4. metadata  resolved once per input and shared by all trackers
    5. artifacts torrent, media report, images, description
    6. upload    a single POST, never retried
    7. inject    every configured qBittorrent / Deluge instance

A failure stops only the current tracker. Every outcome is logged with the input,
tracker and stage in the logging context, written to the local ledger and collected
in the RunSummary whose exit code the CLI returns.

Custom mode (-CCTT) skips classification-derived mapping and metadata: the upload
carries the given category/type ids, zero external ids and a fixed description.
"""

import logging
import os
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seedtools.adapters.tracker_adapter import TrackerAdapter
from seedtools.adapters.tracker_factory import TrackerFactory
from seedtools.database import get_session
from seedtools.models.upload_record import UploadRecord, UploadStatus
from seedtools.schemas.config import RunContext, TrackerSettings
from seedtools.services.artifact_builder import ArtifactBuilder
from seedtools.services.classifier import ContentType, ReleaseInfo, classify
from seedtools.services.client_injector import ClientInjector, InjectionReport
from seedtools.services.exceptions import DuplicateDetected, SeedToolsError
from seedtools.services.metadata_resolver import ExternalIds, MetadataResolver, ResolvedMetadata
from seedtools.services.structured_logging import CorrelationContext, add_extra_context, generate_run_id
from seedtools.services.torrent_generator import tracker_torrent_dir
from seedtools.utils.release_naming import humanize

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_DUPLICATE = 2

SessionFactory = Callable[[], AbstractContextManager]


@dataclass
class TrackerOutcome:
    tracker: str
    status: UploadStatus
    message: str = ""
    torrent_path: Optional[str] = None
    injection: Optional[InjectionReport] = None


@dataclass
class RunSummary:
    input_path: str
    run_id: str = ""
    outcomes: List[TrackerOutcome] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """1 when any tracker failed; duplicates count as success."""
        if any(o.status is UploadStatus.FAILED for o in self.outcomes):
            return EXIT_FAILURE
        return EXIT_OK

    def lines(self) -> List[str]:
        lines = [f"Summary for {self.input_path}:"]
        for o in self.outcomes:
            lines.append(f"  {o.tracker:<14} {o.status.value:<10} {o.message}")
        return lines


def custom_release(input_path: Path) -> ReleaseInfo:
    """Release used in custom mode: only the name matters."""
    return ReleaseInfo(
        content_type=ContentType.UNKNOWN,
        title=humanize(input_path.stem if input_path.is_file() else input_path.name),
        base_name=input_path.name,
    )


class UploadPipeline:
    """
    Tracker-agnostic driver.

    Args:
        context: Validated RunContext
        factory: TrackerFactory (created from the context when None)
        resolver: MetadataResolver (created on first use when None)
        injector: ClientInjector (created from the context when None)
        builder_factory: Builds an ArtifactBuilder for a tracker (tests pass fakes)
        session_factory: Context manager yielding a ledger Session
    """

    def __init__(
        self,
        context: RunContext,
        factory: Optional[TrackerFactory] = None,
        resolver: Optional[MetadataResolver] = None,
        injector: Optional[ClientInjector] = None,
        builder_factory: Optional[Callable[[TrackerSettings], ArtifactBuilder]] = None,
        session_factory: SessionFactory = get_session,
    ):
        self.context = context
        self.factory = factory or TrackerFactory(context)
        self._resolver = resolver
        self.injector = injector or ClientInjector(context.qbittorrent, context.deluge)
        self.builder_factory = builder_factory or (lambda settings: ArtifactBuilder(context, settings))
        self.session_factory = session_factory

    @property
    def resolver(self) -> MetadataResolver:
        if self._resolver is None:
            self._resolver = MetadataResolver(self.context.general, self.context.paths)
        return self._resolver

    # ------------------------------------------------------------------
    # Standard and custom uploads
    # ------------------------------------------------------------------

    def run(
        self,
        input_path: str,
        trackers: Sequence[str],
        custom_category: Optional[Tuple[int, int]] = None,
    ) -> RunSummary:
        path = Path(input_path).resolve()
        summary = RunSummary(input_path=str(path), run_id=generate_run_id())

        with CorrelationContext(run_id=summary.run_id, input=str(path)):
            if not path.exists():
                logger.error(f"Input path does not exist: {path}")
                summary.outcomes.extend(
                    TrackerOutcome(slug, UploadStatus.FAILED, "input path does not exist") for slug in trackers
                )
                return summary

            if custom_category is not None:
                release = custom_release(path)
                logger.info(f"Custom upload with category={custom_category[0]}, type={custom_category[1]}")
            else:
                release = classify(path)
                logger.info(
                    f"Classified {path.name} as {release.content_type.value} "
                    f"(title='{release.title}', year={release.year}, season={release.season}, "
                    f"episode={release.episode}, resolution={release.resolution_tag})"
                )

            metadata: List[ResolvedMetadata] = []
            for slug in trackers:
                with CorrelationContext(tracker=slug):
                    outcome = self._run_tracker(path, release, slug, custom_category, metadata)
                    self._record(path, release, outcome)
                summary.outcomes.append(outcome)

        for line in summary.lines():
            logger.info(line)
        return summary

    def _run_tracker(
        self,
        path: Path,
        release: ReleaseInfo,
        slug: str,
        custom_category: Optional[Tuple[int, int]],
        metadata_cache: List[ResolvedMetadata],
    ) -> TrackerOutcome:
        stage = "setup"
        try:
            adapter = self.factory.get_adapter(slug)

            stage = "ledger"
            add_extra_context(stage=stage)
            previous = self._ledger_hit(path, slug)
            if previous is not None:
                logger.info(f"Already uploaded to {slug} on {previous.created_at}; seeding recorded torrent")
                report = self.inject(previous.torrent_path, path)
                return TrackerOutcome(
                    slug, UploadStatus.DUPLICATE, "already uploaded (ledger)", previous.torrent_path, report,
                )

            stage = "dedupe"
            add_extra_context(stage=stage)
            try:
                self._check_duplicate(adapter, path)
            except DuplicateDetected as dupe:
                return self._seed_existing(adapter, dupe, path, slug)

            if custom_category is None:
                stage = "mapping"
                add_extra_context(stage=stage)
                adapter.category_for(release)

            stage = "metadata"
            add_extra_context(stage=stage)
            if custom_category is not None:
                resolved = ResolvedMetadata()
            else:
                if not metadata_cache:
                    metadata_cache.append(self.resolver.resolve(release, path))
                resolved = metadata_cache[0]

            stage = "artifacts"
            add_extra_context(stage=stage)
            builder = self.builder_factory(adapter.settings)
            if custom_category is not None:
                artifact = builder.build_custom(path)
            else:
                artifact = builder.build(path, release, resolved)

            stage = "upload"
            add_extra_context(stage=stage)
            adapter.upload(
                artifact,
                release,
                resolved.ids if custom_category is None else ExternalIds(),
                category=custom_category,
                name=release.base_name if custom_category is not None else None,
            )

            stage = "inject"
            add_extra_context(stage=stage)
            report = self.inject(artifact.torrent_path, path)
            message = "uploaded" if report.ok else f"uploaded; {len(report.failures)} client(s) failed"
            return TrackerOutcome(slug, UploadStatus.UPLOADED, message, artifact.torrent_path, report)

        except SeedToolsError as e:
            logger.error(f"{slug} failed at stage {stage}: {e}")
            return TrackerOutcome(slug, UploadStatus.FAILED, f"{stage}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error for {slug} at stage {stage}: {type(e).__name__}: {e}", exc_info=True)
            return TrackerOutcome(slug, UploadStatus.FAILED, f"{stage}: {type(e).__name__}: {e}")

    def _check_duplicate(self, adapter: TrackerAdapter, path: Path) -> None:
        """Raises DuplicateDetected when the tracker already carries the release."""
        link = adapter.find_existing(path.name)
        if link:
            raise DuplicateDetected(path.name, link, tracker=adapter.slug)

    def _seed_existing(self, adapter: TrackerAdapter, dupe: DuplicateDetected, path: Path, slug: str) -> TrackerOutcome:
        destination = Path(tracker_torrent_dir(self.context.paths.torrent_dir, slug)) / f"{path.name}.torrent"
        logger.info(f"Duplicate found on {slug}; downloading existing torrent and seeding it")
        adapter.download_existing(dupe.download_link, destination)
        report = self.inject(str(destination), path)
        return TrackerOutcome(slug, UploadStatus.DUPLICATE, "duplicate on tracker; seeded existing torrent", str(destination), report)

    def inject(self, torrent_path: str, path: Path) -> InjectionReport:
        report = self.injector.inject(torrent_path, str(path))
        for failure in report.failures:
            logger.warning(f"Client injection failed: {failure}")
        return report

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def _ledger_hit(self, path: Path, slug: str) -> Optional[UploadRecord]:
        try:
            with self.session_factory() as db:
                previous = UploadRecord.find_uploaded(db, str(path), slug)
                if previous is not None:
                    db.expunge(previous)
        except SQLAlchemyError as e:
            logger.warning(f"Upload ledger unavailable, continuing without it: {e}")
            return None

        if previous is None or not previous.torrent_path or not os.path.exists(previous.torrent_path):
            return None
        return previous

    def _record(self, path: Path, release: ReleaseInfo, outcome: TrackerOutcome) -> None:
        try:
            with self.session_factory() as db:
                self._write_record(db, path, release, outcome)
        except SQLAlchemyError as e:
            logger.warning(f"Could not write upload ledger entry: {e}")

    @staticmethod
    def _write_record(db: Session, path: Path, release: ReleaseInfo, outcome: TrackerOutcome) -> None:
        UploadRecord.record(
            db,
            input_path=str(path),
            tracker=outcome.tracker,
            release_name=release.base_name,
            status=outcome.status,
            torrent_path=outcome.torrent_path,
            message=outcome.message[:500] if outcome.message else None,
        )

    # ------------------------------------------------------------------
    # Dupe-check mode
    # ------------------------------------------------------------------

    def check_duplicates(self, input_path: str, trackers: Sequence[str]) -> int:
        """
        Dedupe only; nothing is built, uploaded or injected.

        Returns:
            0 no duplicate, 2 duplicate on at least one tracker, 1 on any error
        """
        path = Path(input_path).resolve()
        found = False
        with CorrelationContext(run_id=generate_run_id(), input=str(path), stage="dedupe"):
            for slug in trackers:
                with CorrelationContext(tracker=slug):
                    try:
                        link = self.factory.get_adapter(slug).find_existing(path.name)
                    except SeedToolsError as e:
                        logger.error(f"Duplicate check on {slug} failed: {e}")
                        return EXIT_FAILURE
                    if link:
                        logger.info(f"Duplicate on {slug}: {link}")
                        print(f"{slug}: duplicate found ({link})")
                        found = True
                    else:
                        print(f"{slug}: no duplicate")
        return EXIT_DUPLICATE if found else EXIT_OK

    def close(self) -> None:
        self.factory.close()
