import json
import os
import threading
from pathlib import Path

import pytest
from PIL import Image

from ingest.errors import FatalRunError
from ingest.events import CopyProgress, DedupeHit, IngestDone, IngestStarted, ReportGenerated
from ingest.models import IngestParams
from sidecar.xmp import XmpPatch, read_xmp_sidecar
from templates.folder_template import FolderTemplate, RoutingRule
from templates.presets import PRESET_MEDIA_SPLIT

PHASE_ORDER = [
    "ingest.start",
    "ingest.scan.progress",
    "ingest.copy.progress",
    "ingest.verify.progress",
    "ingest.backup.start",
    "ingest.backup.copy.progress",
    "ingest.backup.verify.progress",
    "ingest.xmp.progress",
    "ingest.triage.progress",
    "ingest.triage.done",
    "ingest.report.generated",
    "ingest.done",
]


def _image(path: Path, value: int = 128, fmt: str = "JPEG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (64, 48), (value, value, value)).save(path, fmt)
    return path


def _params(tmp_path: Path, **overrides) -> IngestParams:
    values = dict(
        source_path=tmp_path / "card",
        dest_project_path=tmp_path / "projects",
        project_name="Smith_Wedding",
        verify_mode="none",
    )
    values.update(overrides)
    return IngestParams(**values)


def test_two_images_copied_in_legacy_layout(tmp_path: Path, make_orchestrator) -> None:
    _image(tmp_path / "card" / "DCIM" / "IMG_0001.jpg")
    _image(tmp_path / "card" / "DCIM" / "IMG_0002.png", fmt="PNG")

    manifest = make_orchestrator().run(_params(tmp_path))

    assert manifest.totals.success_count == 2
    assert manifest.totals.fail_count == 0
    assert "Smith_Wedding" in manifest.project_root
    assert manifest.safe_to_format is True
    project = Path(manifest.project_root)
    assert [entry.dst_rel for entry in manifest.files] == ["01_RAW/DCIM/IMG_0001.jpg", "01_RAW/DCIM/IMG_0002.png"]
    assert all(len(entry.hash) == 64 for entry in manifest.files)
    for name in ("01_RAW", "02_EXPORTS", "03_DELIVERY", ".ingest/manifests", ".ingest/reports"):
        assert (project / name).is_dir()
    saved = json.loads(Path(manifest.manifest_path).read_text(encoding="utf-8"))
    assert saved["manifest_path"] == manifest.manifest_path
    assert saved["report_path"] == manifest.report_path
    assert saved["totals"]["success_count"] == 2
    assert Path(manifest.report_path).read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
    assert Path(manifest.triage_json_path).exists()
    assert Path(manifest.triage_export_path).suffix == ".csv"


def test_identical_files_are_deduplicated(tmp_path: Path, make_orchestrator) -> None:
    first = _image(tmp_path / "card" / "A.jpg")
    (tmp_path / "card" / "B.jpg").write_bytes(first.read_bytes())
    events = []

    manifest = make_orchestrator().run(_params(tmp_path, dedupe=True), on_progress=events.append)

    copied, duplicate = manifest.files
    assert copied.status == "copied"
    assert duplicate.status == "skipped_duplicate"
    assert duplicate.duplicate_of == copied.dst_rel
    assert duplicate.hash == copied.hash
    assert manifest.totals.bytes_saved == duplicate.bytes == first.stat().st_size
    assert manifest.totals.duplicate_count == 1
    assert not (Path(manifest.project_root) / duplicate.dst_rel).exists()
    hits = [event for event in events if isinstance(event, DedupeHit)]
    assert hits == [DedupeHit("B.jpg", copied.dst_rel, duplicate.bytes, 1)]


def test_existing_destination_is_skipped(tmp_path: Path, make_orchestrator) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")
    occupied = tmp_path / "projects" / "Smith_Wedding" / "01_RAW" / "IMG_0001.jpg"
    occupied.parent.mkdir(parents=True)
    occupied.write_bytes(b"already here")

    manifest = make_orchestrator().run(_params(tmp_path, verify_mode="full"))

    entry = manifest.files[0]
    assert entry.status == "skipped_exists"
    assert entry.hash == ""
    assert entry.hash_dest is None
    assert entry.verified is None
    assert occupied.read_bytes() == b"already here"


def test_rerun_is_idempotent(tmp_path: Path, make_orchestrator) -> None:
    for index in range(3):
        _image(tmp_path / "card" / f"IMG_{index}.jpg", value=40 * index + 20)
    orchestrator = make_orchestrator()

    first = orchestrator.run(_params(tmp_path, verify_mode="full"))
    second = orchestrator.run(_params(tmp_path, verify_mode="full"))

    assert [entry.status for entry in first.files] == ["copied"] * 3
    assert all(entry.verified is True and entry.hash_dest == entry.hash for entry in first.files)
    assert [entry.status for entry in second.files] == ["skipped_exists"] * 3


def test_template_routing_with_job_root(tmp_path: Path, make_orchestrator) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")
    (tmp_path / "card" / "IMG_0001.CR3").write_bytes(b"raw data")
    (tmp_path / "card" / "MVI_0002.MOV").write_bytes(b"video data")
    template = FolderTemplate(
        template_id="custom:job",
        name="Job",
        routing_rules=PRESET_MEDIA_SPLIT.routing_rules,
        scaffold_dirs=["EXPORTS"],
        job_root_pattern="{CLIENT}/{JOB}",
    )

    manifest = make_orchestrator().run(
        _params(tmp_path, folder_template=template, template_context={"CLIENT": "Smith", "JOB": "Wedding"})
    )

    routed = {entry.src_rel: (entry.dst_rel, entry.routed_by) for entry in manifest.files}
    assert routed == {
        "IMG_0001.CR3": ("Smith/Wedding/RAW/IMG_0001.CR3", "RAW files"),
        "IMG_0001.jpg": ("Smith/Wedding/PHOTO/IMG_0001.jpg", "Photo files"),
        "MVI_0002.MOV": ("Smith/Wedding/VIDEO/MVI_0002.MOV", "Video files"),
    }
    assert manifest.template_id == "custom:job"
    assert manifest.dest_root.endswith("Smith/Wedding")
    assert (Path(manifest.project_root) / "Smith" / "Wedding" / "EXPORTS").is_dir()


def test_camera_label_fallback_routes_safely(tmp_path: Path, make_orchestrator) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")
    template = FolderTemplate(
        template_id="custom:camera",
        name="Camera",
        routing_rules=[RoutingRule(label="All", dest_pattern="{CAMERA_LABEL}/{YYYY}")],
    )

    manifest = make_orchestrator().run(_params(tmp_path, folder_template=template))

    assert manifest.files[0].dst_rel == "Unknown/2025/IMG_0001.jpg"


def test_unsafe_token_becomes_per_file_error(tmp_path: Path, make_orchestrator) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")
    template = FolderTemplate(
        template_id="custom:client",
        name="Client",
        routing_rules=[RoutingRule(label="All", dest_pattern="{CLIENT}")],
    )

    manifest = make_orchestrator().run(
        _params(tmp_path, folder_template=template, template_context={"CLIENT": ".."})
    )

    entry = manifest.files[0]
    assert entry.status == "error"
    assert "traversal" in entry.error
    assert manifest.totals.fail_count == 1
    assert manifest.safe_to_format is False
    assert Path(manifest.manifest_path).exists()


def test_backup_and_sidecars(tmp_path: Path, make_orchestrator) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")
    _image(tmp_path / "card" / "IMG_0002.jpg", value=90)
    events = []

    manifest = make_orchestrator().run(
        _params(
            tmp_path,
            verify_mode="full",
            backup_dest=tmp_path / "backup",
            xmp_patch=XmpPatch(creator="Jane Doe", rights="(c) Jane"),
        ),
        on_progress=events.append,
    )

    backup_project = tmp_path / "backup" / "Smith_Wedding"
    for entry in manifest.files:
        assert entry.backup_status == "copied"
        assert entry.backup_hash == entry.hash
        assert entry.backup_verified is True
        assert entry.sidecar_written is True
        assert (backup_project / entry.dst_rel).read_bytes() == (Path(manifest.project_root) / entry.dst_rel).read_bytes()
        assert read_xmp_sidecar(Path(manifest.project_root) / entry.sidecar_path).creator == "Jane Doe"
        assert (backup_project / entry.sidecar_path).exists()
    assert manifest.backup_root == str(backup_project / "01_RAW")
    assert manifest.totals.backup_success_count == 2
    assert manifest.totals.xmp_written_count == 2
    assert manifest.safe_to_format is True

    ranks = [PHASE_ORDER.index(event.type) for event in events]
    assert ranks == sorted(ranks)
    for phase in PHASE_ORDER:
        assert phase in [event.type for event in events], phase
    assert isinstance(events[0], IngestStarted)
    assert isinstance(events[-2], ReportGenerated)
    assert events[-1] == IngestDone(2, 0, events[-1].elapsed_ms, True)
    copy_events = [event for event in events if type(event) is CopyProgress]
    assert [event.index for event in copy_events] == [1, 2]
    assert copy_events[1].total_bytes_copied > copy_events[0].total_bytes_copied


def test_cancelled_run_is_never_safe(tmp_path: Path, make_orchestrator) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")
    cancel = threading.Event()
    cancel.set()

    manifest = make_orchestrator().run(_params(tmp_path), cancel_event=cancel)

    assert manifest.cancelled is True
    assert manifest.files == []
    assert manifest.safe_to_format is False


def test_missing_source_aborts_before_any_write(tmp_path: Path, make_orchestrator) -> None:
    with pytest.raises(FatalRunError):
        make_orchestrator().run(_params(tmp_path))
    assert not (tmp_path / "projects").exists()


def test_invalid_template_aborts(tmp_path: Path, make_orchestrator) -> None:
    (tmp_path / "card").mkdir()
    template = FolderTemplate(
        template_id="custom:bad", name="Bad", routing_rules=[RoutingRule(label="x", dest_pattern="{NOPE}")]
    )

    with pytest.raises(FatalRunError):
        make_orchestrator().run(_params(tmp_path, folder_template=template))
    assert not (tmp_path / "projects").exists()


@pytest.mark.parametrize("overrides", [{"hash_algo": "md5"}, {"verify_mode": "sometimes"}])
def test_bad_run_settings_abort(tmp_path: Path, make_orchestrator, overrides) -> None:
    (tmp_path / "card").mkdir()

    with pytest.raises(FatalRunError):
        make_orchestrator().run(_params(tmp_path, **overrides))


@pytest.mark.parametrize(
    "config",
    [
        {"triage": {"export_format": "pdf"}},
        {"triage": {"enabled": "sometimes"}},
        {"triage": {"grid_size": "wide"}},
        {"verification": {"sentinel_count": "many"}},
        {"verification": {"sentinel_count": 0}},
        {"hashing": {"chunk_bytes": "big"}},
        {"scan": {"skip_hidden": "maybe"}},
    ],
)
def test_bad_config_aborts_before_copying(tmp_path: Path, make_orchestrator, config) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")

    with pytest.raises(FatalRunError):
        make_orchestrator(config).run(_params(tmp_path))
    assert not (tmp_path / "projects").exists()


def test_unwritable_destination_aborts(tmp_path: Path, make_orchestrator) -> None:
    (tmp_path / "card").mkdir()
    blocker = tmp_path / "projects"
    blocker.write_text("a file, not a directory", encoding="utf-8")

    with pytest.raises(FatalRunError):
        make_orchestrator().run(_params(tmp_path))


def _deny_listing(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    real_scandir = os.scandir

    def guarded(path="."):
        if Path(path).name == name:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", guarded)


def test_unreadable_source_folder_blocks_format(
    tmp_path: Path, make_orchestrator, monkeypatch: pytest.MonkeyPatch
) -> None:
    _image(tmp_path / "card" / "A" / "IMG_0001.jpg")
    _image(tmp_path / "card" / "B" / "IMG_0002.jpg")
    _deny_listing(monkeypatch, "B")

    manifest = make_orchestrator().run(_params(tmp_path, verify_mode="full"))

    assert [(entry.src_rel, entry.status) for entry in manifest.files] == [
        ("A/IMG_0001.jpg", "copied"),
        ("B", "error"),
    ]
    assert "could not be read" in manifest.files[1].error
    assert manifest.totals.fail_count == 1
    assert manifest.safe_to_format is False
    assert Path(manifest.manifest_path).exists()


def test_unlistable_source_root_aborts(tmp_path: Path, make_orchestrator, monkeypatch: pytest.MonkeyPatch) -> None:
    _image(tmp_path / "card" / "IMG_0001.jpg")
    _deny_listing(monkeypatch, "card")

    with pytest.raises(FatalRunError):
        make_orchestrator().run(_params(tmp_path))
    assert not (tmp_path / "projects").exists()
