"""Tests for extraction tree classification and repair."""
from snapshot_restore.domain.models import ExtractionState
from snapshot_restore.infrastructure.storage import FileStorage
from snapshot_restore.services.resume import CONFIG_MEMBER, MANIFEST_MEMBER, ResumeDetector


def make_tree(root, names):
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("x")
    return root


def test_empty_tree(tmp_path):
    detector = ResumeDetector(FileStorage())
    assert detector.inspect(tmp_path) is ExtractionState.EMPTY
    assert detector.prepare(tmp_path) is ExtractionState.EMPTY


def test_missing_tree_is_empty(tmp_path):
    assert ResumeDetector(FileStorage()).inspect(tmp_path / "nope") is ExtractionState.EMPTY


def test_configuration_peek_is_partial_and_repaired(tmp_path):
    tree = make_tree(tmp_path / "tree", [CONFIG_MEMBER, MANIFEST_MEMBER])
    detector = ResumeDetector(FileStorage())

    assert detector.inspect(tree) is ExtractionState.PARTIAL
    assert detector.prepare(tree) is ExtractionState.EMPTY
    assert list(tree.iterdir()) == []
    assert tree.is_dir()


def test_manifest_only_is_repaired(tmp_path):
    tree = make_tree(tmp_path / "tree", [MANIFEST_MEMBER])
    assert ResumeDetector(FileStorage()).prepare(tree) is ExtractionState.EMPTY
    assert not (tree / MANIFEST_MEMBER).exists()


def test_stale_leftovers_are_removed(tmp_path):
    tree = make_tree(tmp_path / "tree", ["www/index.php", "stray.txt"])
    assert ResumeDetector(FileStorage()).prepare(tree) is ExtractionState.EMPTY
    assert list(tree.iterdir()) == []


def test_complete_tree_is_left_alone(tmp_path):
    tree = make_tree(tmp_path / "tree", [CONFIG_MEMBER, MANIFEST_MEMBER, "sql/wp_posts.sql"])
    detector = ResumeDetector(FileStorage())

    assert detector.prepare(tree) is ExtractionState.COMPLETE
    assert (tree / CONFIG_MEMBER).exists()
    assert (tree / "sql" / "wp_posts.sql").exists()
