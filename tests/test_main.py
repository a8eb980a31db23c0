from pathlib import Path

from portrait_animator.__main__ import ContextFile, parse_args


def test_parse_args_defaults_and_options(tmp_path):
    args = parse_args(["session.yml", "--output-dir", str(tmp_path)])
    assert args.context == Path("session.yml")
    assert args.output_dir == tmp_path
    assert args.image is None


def test_context_file_keeps_last_good_copy(tmp_path):
    path = tmp_path / "session.yml"
    path.write_text("scenes: [Harbor, Market]\ncharacter_rules: A pirate.\n", encoding="utf-8")
    provider = ContextFile(path)
    first = provider()
    assert first.scene_descriptions == ("Harbor", "Market")

    path.write_text("scenes: [unclosed", encoding="utf-8")
    assert provider() is first


def test_context_file_without_path():
    assert ContextFile(None)().scene_descriptions == ()
