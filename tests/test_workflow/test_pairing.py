"""
Tests for the pairing engine.
"""

from qaflow.workflow.pairing import build_pairs, split_filename


class TestSplitFilename:

    def test_plain_name(self):
        assert split_filename("call_01.mp3") == ("call_01", ".mp3")

    def test_extension_lowercased_stem_kept(self):
        assert split_filename("Track1.MP3") == ("Track1", ".mp3")

    def test_directory_components_dropped(self):
        assert split_filename("batch/2024/a.txt") == ("a", ".txt")
        assert split_filename("batch\\2024\\a.txt") == ("a", ".txt")

    def test_inner_dots_stay_in_stem(self):
        assert split_filename("a.b.mp3") == ("a.b", ".mp3")

    def test_no_extension(self):
        assert split_filename("README") == ("README", "")


class TestBuildPairs:

    def test_pairs_audio_and_text(self, staged):
        pairs = build_pairs([staged("a.mp3"), staged("a.txt"), staged("b.mp3")])
        assert [p.base_name for p in pairs] == ["a", "b"]
        assert pairs[0].fully_mapped
        assert pairs[1].audio is not None and pairs[1].text is None

    def test_order_follows_first_encounter(self, staged):
        pairs = build_pairs([staged("z.txt"), staged("m.mp3"), staged("z.mp3")])
        assert [p.base_name for p in pairs] == ["z", "m"]

    def test_extension_case_insensitive(self, staged):
        pairs = build_pairs([staged("Track1.MP3"), staged("Track1.txt")])
        assert len(pairs) == 1
        assert pairs[0].fully_mapped

    def test_stem_case_sensitive(self, staged):
        pairs = build_pairs([staged("track1.mp3"), staged("Track1.txt")])
        assert len(pairs) == 2
        assert not any(p.fully_mapped for p in pairs)

    def test_unsupported_extension_dropped_and_discarded(self, staged):
        wav = staged("a.wav")
        pairs = build_pairs([wav, staged("a.txt")])
        assert len(pairs) == 1
        assert pairs[0].audio is None
        assert not wav.path.exists()

    def test_only_unsupported_files(self, staged):
        assert build_pairs([staged("notes.docx"), staged("README")]) == []

    def test_every_pair_has_a_side(self, staged):
        names = ["a.mp3", "b.txt", "c.mp3", "c.txt", "d.pdf", "e.TXT"]
        pairs = build_pairs([staged(n) for n in names])
        assert pairs
        assert all(p.blobs() for p in pairs)

    def test_repeated_side_keeps_latest(self, staged):
        first = staged("x/a.mp3")
        second = staged("y/a.mp3")
        pairs = build_pairs([first, second])
        assert len(pairs) == 1
        assert pairs[0].audio is second
        assert not first.path.exists()

    def test_custom_extensions(self, staged):
        pairs = build_pairs([staged("a.wav"), staged("a.srt")], audio_extension=".wav", text_extension=".srt")
        assert pairs[0].fully_mapped
