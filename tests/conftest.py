"""
Shared fixtures
"""

import pytest

from taggedpyxm.core.config import Config
from taggedpyxm.engine.template import DictLoader, TemplateEnvironment
from taggedpyxm.tags import ContextTagExtension


BASE_TEMPLATE = """{%- tag 'base-title' -%}

<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{% block title %}{{ title }}{% endblock %}</title>
</head>
<body>
{% block content %}
{% endblock %}
</body>
</html>"""

CHILD_TEMPLATE = """{% extends '_base.pyxm' %}

{% tag ['content'] %}

{% block content %}
    <p>This test is tagged and uses inheritance.</p>
{% endblock %}

{# Add some more tags, just for testing. #}
{% tag 'some-context-tag', 'some-other-context-tag' %}"""

CHILD_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Hello world</title>
</head>
<body>
    <p>This test is tagged and uses inheritance.</p>
</body>
</html>"""


@pytest.fixture
def config():
    """Configuration isolated from PYXM_* environment variables."""
    return Config(load_env=False)


@pytest.fixture
def make_env(config):
    """Create an environment over in-memory templates."""
    def factory(templates=None, extensions=None):
        return TemplateEnvironment(
            loader=DictLoader(templates or {}),
            config=config,
            extensions=[ContextTagExtension()] if extensions is None else extensions,
        )
    return factory


@pytest.fixture
def child_html():
    """Expected output of the page rendered with title "Hello world"."""
    return CHILD_HTML


@pytest.fixture
def env(make_env):
    """Environment holding the layout/page pair."""
    return make_env({
        "_base.pyxm": BASE_TEMPLATE,
        "test.pyxm": CHILD_TEMPLATE,
    })
