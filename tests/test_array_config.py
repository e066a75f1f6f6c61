from pathlib import Path

import pytest

from config import ArrayConfig, DataDrive, OtherDirective, find_array_config, load_array_config, parse_array_config
from config import array_config
from config.array_config import tokenize
from utils.errors import ConfigurationError


def test_parses_directives_in_file_order() -> None:
    text = "data d1 /mnt/a\nparity /mnt/p/par.parity\nexclude *.tmp\n# note\ndata d2 /mnt/b"

    config = parse_array_config(text)

    assert config.data == (DataDrive("d1", "/mnt/a"), DataDrive("d2", "/mnt/b"))
    assert config.parity == ("/mnt/p/par.parity",)
    assert config.exclude == ("*.tmp",)
    assert config.content == ()
    assert config.other == ()


def test_disk_alias_and_case_insensitive_keywords() -> None:
    config = parse_array_config("DISK d1 /mnt/a\nData d2 /mnt/b\nCONTENT /var/snapraid.content\n")

    assert config.data == (DataDrive("d1", "/mnt/a"), DataDrive("d2", "/mnt/b"))
    assert config.content == ("/var/snapraid.content",)


def test_quotes_and_trailing_comments() -> None:
    text = 'data "disk one" "/mnt/disk one" # trailing\nexclude /tmp/  "a b"  # skip\n'

    config = parse_array_config(text)

    assert config.data == (DataDrive("disk one", "/mnt/disk one"),)
    assert config.exclude == ("/tmp/ a b",)


def test_hash_inside_token_is_not_a_comment() -> None:
    assert tokenize("exclude file#1.txt") == ["exclude", "file#1.txt"]
    assert tokenize("exclude #file") == ["exclude"]


def test_unknown_directives_are_kept() -> None:
    config = parse_array_config("autosave 500\nblocksize 256\nnohidden\n")

    assert config.other == (
        OtherDirective("autosave", ("500",)),
        OtherDirective("blocksize", ("256",)),
        OtherDirective("nohidden", ()),
    )


def test_malformed_lines_are_skipped() -> None:
    text = 'data only_name\nparity\ncontent\nexclude\n\n   \n"\nparity "/unterminated\n'

    config = parse_array_config(text)

    assert config.data == ()
    assert config.content == ()
    assert config.exclude == ()
    assert config.parity == ('"/unterminated',)


def test_reserialize_is_idempotent() -> None:
    text = "\n".join(
        [
            "parity /mnt/p1/snapraid.parity",
            "content /var/snapraid.content",
            "content /mnt/d1/snapraid.content",
            'data "d 1" "/mnt/disk one"',
            "disk d2 /mnt/d2",
            "exclude *.unrecoverable",
            "exclude /lost+found/",
            'exclude "#hidden"',
            'exclude "a  b"',
            "autosave 500",
        ]
    )

    first = parse_array_config(text)
    second = parse_array_config(first.to_text())

    assert second == first
    assert second.exclude == ("*.unrecoverable", "/lost+found/", "#hidden", "a  b")
    assert parse_array_config(second.to_text()) == second


def test_empty_config_renders_empty_text() -> None:
    assert ArrayConfig().to_text() == ""


def test_find_prefers_readable_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(array_config, "CONFIG_SEARCH_DIRS", (tmp_path / "usr", tmp_path / "etc"))
    override = tmp_path / "custom.conf"
    override.write_text("data d1 /mnt/a\n", encoding="utf-8")

    assert find_array_config(override) == override


def test_find_falls_back_in_search_order(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    usr_dir = tmp_path / "usr"
    etc_dir = tmp_path / "etc"
    usr_dir.mkdir()
    etc_dir.mkdir()
    monkeypatch.setattr(array_config, "CONFIG_SEARCH_DIRS", (usr_dir, etc_dir))
    (etc_dir / "snapraid.conf").write_text("", encoding="utf-8")

    assert find_array_config(tmp_path / "missing.conf") == etc_dir / "snapraid.conf"

    (usr_dir / "snapraid.conf").write_text("", encoding="utf-8")
    assert find_array_config() == usr_dir / "snapraid.conf"


def test_find_raises_when_nothing_readable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(array_config, "CONFIG_SEARCH_DIRS", (tmp_path,))

    with pytest.raises(ConfigurationError):
        find_array_config()


def test_load_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "snapraid.conf"
    path.write_text("parity /mnt/p/snapraid.parity\ndata d1 /mnt/d1\n", encoding="utf-8")

    config = load_array_config(path)

    assert config.parity == ("/mnt/p/snapraid.parity",)
    assert config.data == (DataDrive("d1", "/mnt/d1"),)
