from tweaqengine.__main__ import main


def test_simplify_command_prints_stable_selector(capsys) -> None:
    assert main(["simplify", "div.hero > a.btn-primary:hover"]) == 0
    assert capsys.readouterr().out.strip() == "a.btn-primary\t(a.btn-primary)"


def test_simplify_command_fails_without_tag(capsys) -> None:
    assert main(["simplify", ".card > .title"]) == 1
    assert "No tag could be extracted" in capsys.readouterr().out
