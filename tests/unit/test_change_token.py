# tests/unit/test_change_token.py

import pytest

from fileoverlay.io.change_token import ChangeSubscription, ChangeSubscriptionRegistry


@pytest.mark.parametrize("pattern, path, expected", [
    ("index.html", "index.html", True),
    ("/index.html", "INDEX.HTML", True),
    ("index.html", "sub/index.html", False),
    ("*.html", "404.html", True),
    ("**/*.css", "static/css/site.css", True),
    ("static\\*.js", "static/app.js", True),
    ("*.html", "sub/page.html", True),
    ("[ab].html", "a.html", True),
    ("[[]ab].html", "a.html", False),
    ("[[]ab].html", "[ab].html", True),
    ("posts/[[]id].html", "posts/[id].html", True),
])
def test_pattern_matching(pattern, path, expected):
    assert ChangeSubscription(pattern).matches(path) is expected


def test_notify_runs_callbacks_and_sets_has_changed():
    calls = []
    subscription = ChangeSubscription("a.txt")
    subscription.register_callback(lambda: calls.append("first")).register_callback(lambda: calls.append("second"))

    assert not subscription.has_changed
    subscription.notify()

    assert subscription.has_changed
    assert calls == ["first", "second"]


def test_failing_callback_does_not_stop_others():
    calls = []

    def broken():
        raise RuntimeError("boom")

    subscription = ChangeSubscription("a.txt")
    subscription.register_callback(broken)
    subscription.register_callback(lambda: calls.append("ok"))

    subscription.notify()

    assert calls == ["ok"]


def test_register_callback_rejects_non_callable():
    with pytest.raises(TypeError):
        ChangeSubscription("a.txt").register_callback(None)


def test_cancel_is_idempotent_and_reports_once():
    cancelled = []
    subscription = ChangeSubscription("a.txt", on_cancel=cancelled.append)
    calls = []
    subscription.register_callback(lambda: calls.append(1))

    with subscription:
        pass
    subscription.cancel()
    subscription.notify()

    assert cancelled == [subscription]
    assert calls == []
    assert not subscription.active


def test_registry_notifies_matching_and_reports_empty():
    emptied = []
    registry = ChangeSubscriptionRegistry(on_empty=lambda: emptied.append(True))
    html = registry.subscribe("*.html")
    css = registry.subscribe("*.css")
    calls = []
    html.register_callback(lambda: calls.append("html"))
    css.register_callback(lambda: calls.append("css"))

    assert registry.notify("index.html") == 1
    assert calls == ["html"]
    assert len(registry) == 2

    html.cancel()
    assert emptied == []
    registry.cancel_all()
    assert emptied == [True]
    assert len(registry) == 0
    assert registry.notify("site.css") == 0
