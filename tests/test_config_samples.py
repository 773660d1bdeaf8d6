from pathlib import Path

from edportal.academics.enrollment import FallbackPolicy
from edportal.core.config import load_portal_config
from edportal.providers.document_store import DocumentStore


def test_portal_config_sample_loads() -> None:
    """Ensure the shipped portal YAML matches the PortalConfig schema."""

    repo_root = Path(__file__).resolve().parents[1]
    sample_path = repo_root / "config" / "portal.yaml"

    config = load_portal_config(sample_path)

    assert config.data.snapshot_path == (repo_root / "config" / "sample_snapshot.yaml").resolve()
    assert config.data.snapshot_path.exists()
    assert config.policy.fallback is FallbackPolicy.SHOW_ALL
    assert "http://localhost:3000" in config.server.cors_origins
    assert config.logging.audit_log == (repo_root / "outputs" / "access.jsonl").resolve()


def test_sample_snapshot_has_every_collection() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    store = DocumentStore(repo_root / "config" / "sample_snapshot.yaml")

    assert store.list_users()
    assert store.list_courses()
    assert store.get_assignments("db101")
    assert store.get_results("db101")
    assert store.get_program_registrations()
