"""
Tests for the pyxm command line tool
"""

import orjson
import pytest

from taggedpyxm.cli.main import cli, parse_vars


@pytest.fixture
def templates(tmp_path):
    (tmp_path / "base.pyxm").write_text("{% tag 'layout' %}<main>{% block body %}{% endblock %}</main>")
    (tmp_path / "page.pyxm").write_text(
        "{% extends 'base.pyxm' %}\n"
        "{% tag 'user', 'menu' %}\n"
        "{% tag 'user' %}\n"
        "{% block body %}Hi {{ name }}{% endblock %}"
    )
    return tmp_path


def test_tags(templates, capsys):
    assert cli(["tags", "page.pyxm", "--path", str(templates)]) == 0

    assert capsys.readouterr().out.splitlines() == ["menu", "user"]


def test_tags_with_parent_as_json(templates, capsys):
    code = cli(["tags", "page", "-p", str(templates), "--include-parent", "--json"])

    assert code == 0
    assert orjson.loads(capsys.readouterr().out) == ["layout", "menu", "user"]


def test_compile(templates, capsys):
    assert cli(["compile", "page.pyxm", "-p", str(templates)]) == 0

    out = capsys.readouterr().out
    assert "class _Template(_Base):" in out
    assert "def get_context_tags(self, include_parent=False):" in out


def test_render(templates, capsys):
    assert cli(["render", "page.pyxm", "-p", str(templates), "--var", "name=<Ann>"]) == 0

    assert capsys.readouterr().out == "<main>Hi &lt;Ann&gt;</main>\n"


def test_missing_template(templates, capsys):
    assert cli(["tags", "nope.pyxm", "-p", str(templates)]) == 1

    assert capsys.readouterr().err.startswith("Error: Template 'nope.pyxm' not found")


def test_syntax_error(tmp_path, capsys):
    (tmp_path / "bad.pyxm").write_text("{% block a %}{% tag 'x' %}{% endblock %}")

    assert cli(["tags", "bad.pyxm", "-p", str(tmp_path)]) == 1

    assert 'Cannot use "tag" inside a block.' in capsys.readouterr().err


def test_no_command(capsys):
    assert cli([]) == 0

    assert "usage: pyxm" in capsys.readouterr().out


def test_parse_vars():
    assert parse_vars(["a=1", "b=x=y"]) == {"a": "1", "b": "x=y"}
    with pytest.raises(ValueError):
        parse_vars(["novalue"])
