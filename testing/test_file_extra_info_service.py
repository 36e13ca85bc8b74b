"""
Tests for annotations keyed by content hash.

Tests cover:
- Registration on first access and path merging
- Annotations surviving card edits and renames
- Path synchronisation after moves and deletions
- Repository upsert behaviour under a duplicate insert
"""

import pytest
from sqlalchemy.exc import IntegrityError

from charavault.repositories import FileExtraInfoRepository, ProjectRepository
from charavault.services.character_cards import CharacterCard, embed_character_data
from charavault.services.content_hash import ContentHasher
from charavault.services.directory_scanner import DirectoryScanner
from charavault.services.file_extra_info_service import FileExtraInfoService
from charavault.services.project_paths import PathOutsideRootError, ProjectPaths


@pytest.fixture
def data_root(tmp_path):
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def project(session, data_root):
    (data_root / "cards").mkdir()
    return ProjectRepository(session).create("Cards", "cards")


@pytest.fixture
def service(session, data_root):
    return FileExtraInfoService(
        session,
        ProjectPaths(data_root),
        ContentHasher(max_workers=2),
        DirectoryScanner(extensions=[".png", ".jpg", ".jpeg"]),
    )


class TestFileExtraInfoService:
    """Annotation lifecycle."""

    def test_first_access_registers(self, service, project, data_root, minimal_png):
        (data_root / "cards" / "nova.png").write_bytes(minimal_png)

        info = service.get_or_register(project, "nova.png")

        assert info.content_hash == ContentHasher.digest(minimal_png)
        assert info.relative_paths == ["nova.png"]
        assert info.starred is False
        assert service.get_or_register(project, "nova.png").id == info.id

    def test_duplicate_content_merges_paths(self, service, project, data_root, minimal_png):
        (data_root / "cards" / "a.png").write_bytes(minimal_png)
        (data_root / "cards" / "b.png").write_bytes(minimal_png)

        service.get_or_register(project, "a.png")
        info = service.get_or_register(project, "b.png")

        assert info.relative_paths == ["a.png", "b.png"]
        assert len(service.list_all()) == 1

    def test_update_and_survive_card_edit(self, service, project, data_root, minimal_png):
        """Editing the embedded card keeps the same annotations."""
        target = data_root / "cards" / "nova.png"
        target.write_bytes(minimal_png)
        service.update(project, "nova.png", {"tags": ["fav"], "starred": True, "notes": "good one"})

        target.write_bytes(embed_character_data(minimal_png, CharacterCard(name="Nova")))
        info = service.get_or_register(project, "nova.png")

        assert info.tags == ["fav"]
        assert info.starred is True
        assert info.notes == "good one"

    def test_explicit_relative_paths_override(self, service, project, data_root, minimal_png):
        (data_root / "cards" / "a.png").write_bytes(minimal_png)
        info = service.update(project, "a.png", {"relative_paths": ["a.png", "copy.png"]})

        assert info.relative_paths == ["a.png", "copy.png"]

    def test_delete(self, service, project, data_root, minimal_png):
        (data_root / "cards" / "a.png").write_bytes(minimal_png)
        service.get_or_register(project, "a.png")

        assert service.delete(project, "a.png") is True
        assert service.delete(project, "a.png") is False

    def test_missing_file(self, service, project):
        with pytest.raises(FileNotFoundError):
            service.get_or_register(project, "nope.png")

    def test_path_escape_rejected(self, service, project, data_root, minimal_png):
        (data_root / "secret.png").write_bytes(minimal_png)
        with pytest.raises(PathOutsideRootError):
            service.get_or_register(project, "../secret.png")


class TestSyncPaths:
    """Re-locating annotated files."""

    def test_moved_file_is_found(self, service, project, data_root, minimal_png):
        cards = data_root / "cards"
        (cards / "old.png").write_bytes(minimal_png)
        service.update(project, "old.png", {"tags": ["keep"]})

        (cards / "archive").mkdir()
        (cards / "old.png").rename(cards / "archive" / "new.png")

        report = service.sync_paths([project.id])

        assert report.to_dict()["updatedCount"] == 1
        assert report.error_count == 0
        info = service.list_all()[0]
        assert info.relative_paths == ["archive/new.png"]
        assert info.tags == ["keep"]

    def test_unchanged_paths_not_counted(self, service, project, data_root, minimal_png):
        (data_root / "cards" / "a.png").write_bytes(minimal_png)
        service.get_or_register(project, "a.png")

        assert service.sync_paths([project.id]).updated_count == 0

    def test_vanished_file_dropped(self, service, project, data_root, minimal_png):
        target = data_root / "cards" / "gone.png"
        target.write_bytes(minimal_png)
        service.get_or_register(project, "gone.png")
        target.unlink()

        service.sync_paths([project.id])

        assert service.list_all()[0].relative_paths == []

    def test_unknown_projects(self, service):
        with pytest.raises(ValueError):
            service.sync_paths([999])

    def test_missing_project_directory_reported(self, service, session):
        project = ProjectRepository(session).create("Ghost", "ghost")

        report = service.sync_paths([project.id])

        assert report.error_count == 1
        assert report.errors[0].startswith(f"Project {project.id}")

    def test_find_paths(self, service, project, data_root, minimal_png):
        (data_root / "cards" / "x.png").write_bytes(embed_character_data(minimal_png, CharacterCard(name="X")))

        assert service.find_paths(project, ContentHasher.digest(minimal_png)) == ["x.png"]
        assert service.find_paths(project, "0" * 64) is None


class TestRepository:
    """FileExtraInfoRepository upsert."""

    def test_register_path_after_lost_insert_race(self, session, project):
        """A duplicate insert loses to the unique constraint; register_path merges instead."""
        repo = FileExtraInfoRepository(session)
        repo.create("abc", project.id, ["first.png"])

        with pytest.raises(IntegrityError):
            repo.create("abc", project.id, ["second.png"])

        info = repo.register_path("abc", project.id, "second.png")
        assert info.relative_paths == ["first.png", "second.png"]

    def test_update_ignores_unknown_fields(self, session, project):
        repo = FileExtraInfoRepository(session)
        repo.create("def", project.id, ["a.png"])

        info = repo.update("def", {"content_hash": "zzz", "notes": "n"})

        assert info.content_hash == "def"
        assert info.notes == "n"
        assert repo.update("missing", {"notes": "x"}) is None

    def test_project_delete_cascades(self, session, project):
        repo = FileExtraInfoRepository(session)
        repo.create("ghi", project.id, ["a.png"])

        ProjectRepository(session).delete(project.id)

        assert repo.get_by_hash("ghi") is None
