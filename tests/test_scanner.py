"""
Test one-shot source discovery.
"""

from mediasort.scanner import CandidateFile, scan, scan_unknown


class TestScanner:
    """Test recursive scanning and filtering."""

    def test_recursive_media_only(self, source_dir, write_file):
        write_file(source_dir / "b.jpg")
        write_file(source_dir / "nested" / "deeper" / "clip.MP4")
        write_file(source_dir / "notes.txt")
        write_file(source_dir / ".DS_Store")

        names = [c.path.relative_to(source_dir).as_posix() for c in scan(source_dir)]

        assert names == ["b.jpg", "nested/deeper/clip.MP4"]

    def test_candidate_fields(self, source_dir, write_file):
        path = write_file(source_dir / "a.jpg", b"12345")

        (candidate,) = list(scan(source_dir))

        assert candidate == CandidateFile(path=path, size=5, mtime=path.stat().st_mtime)

    def test_skips_temporary_transfers(self, source_dir, write_file):
        write_file(source_dir / ".mediasort-a.jpg.1234abcd.part")

        assert list(scan(source_dir)) == []

    def test_single_pass(self, source_dir, write_file):
        write_file(source_dir / "a.jpg")
        candidates = scan(source_dir)

        assert len(list(candidates)) == 1
        assert list(candidates) == []

    def test_scan_unknown(self, source_dir, write_file):
        write_file(source_dir / "a.jpg")
        write_file(source_dir / "docs" / "notes.txt")
        write_file(source_dir / "Thumbs.db")

        names = [c.path.name for c in scan_unknown(source_dir)]

        assert names == ["notes.txt"]

    def test_empty_tree(self, source_dir):
        assert list(scan(source_dir)) == []
