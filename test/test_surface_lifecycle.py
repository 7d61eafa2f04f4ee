"""Tests for SurfaceLifecycleManager"""

import pytest

from surfaces.cookie_jar import COOKIE_JAR_KEY, CookieJar, CookieRecord
from surfaces.lifecycle import SurfaceLifecycleManager, is_loadable
from surfaces.redirect_guard import ProvisionalErrorKind
from surfaces.surface import (
  ChallengeDisposition,
  ChallengeType,
  NavigationPolicy,
  ScriptDialogKind,
  SurfaceRole,
  TlsPolicy,
)


class TestIsLoadable:
  @pytest.mark.parametrize(
    "url,expected",
    [
      ("https://a.example/", True),
      ("http://a.example/", True),
      ("about:blank", False),
      ("", False),
      (None, False),
      ("mailto:someone@example.com", False),
      ("itms-apps://apps.apple.com/app/id1", False),
    ],
  )
  def test_is_loadable(self, url, expected):
    assert is_loadable(url) is expected


class TestPrimarySurface:
  def test_cookies_restored_before_first_load(self, manager, factory, storage):
    storage.set(COOKIE_JAR_KEY, {"a.example": {"sid": {"value": "1"}}})
    order = []
    factory.cookie_store.set_cookie = lambda record: order.append(("cookie", record.name))
    original_create = factory.create_surface

    def create_surface(role, settings):
      surface = original_create(role, settings)
      original_load = surface.load
      surface.load = lambda url: (order.append(("load", url)), original_load(url))
      return surface

    factory.create_surface = create_surface

    manager.create_primary("https://a.example/")

    assert order == [("cookie", "sid"), ("load", "https://a.example/")]

  def test_primary_is_reused(self, manager, factory):
    first = manager.create_primary("https://a.example/")
    second = manager.create_primary("https://b.example/")

    assert first is second
    assert len(factory.created) == 1
    assert first.loads == ["https://a.example/", "https://b.example/"]

  def test_primary_role(self, manager):
    assert manager.create_primary("https://a.example/").role == SurfaceRole.PRIMARY


class TestAuxiliarySurfaces:
  def test_request_with_target_frame_is_rejected(self, manager, factory):
    assert manager.request_auxiliary("https://a.example/", target_frame_is_none=False) is None
    assert factory.created == []

  def test_popup_is_pushed_and_loaded(self, manager):
    popup = manager.request_auxiliary("https://pay.example/", target_frame_is_none=True)

    assert manager.auxiliary == [popup]
    assert popup.role == SurfaceRole.AUXILIARY
    assert popup.loads == ["https://pay.example/"]
    assert popup.edge_swipe_handler is not None

  @pytest.mark.parametrize("url", ["", None, "about:blank", "tel:+100"])
  def test_unloadable_popup_is_created_but_not_loaded(self, manager, url):
    popup = manager.request_auxiliary(url, target_frame_is_none=True)

    assert popup is not None
    assert popup.loads == []

  def test_close_all_with_return_to(self, manager):
    primary = manager.create_primary("https://a.example/")
    primary.load("https://a.example/two")
    popups = [
      manager.request_auxiliary(f"https://p{i}.example/", target_frame_is_none=True)
      for i in range(3)
    ]

    manager.close_all_auxiliary(return_to="https://a.example/back")

    assert manager.auxiliary == []
    assert all(p.closed for p in popups)
    assert primary.url == "https://a.example/back"
    assert primary.back_calls == 0

  def test_close_all_without_return_to_goes_back(self, manager):
    primary = manager.create_primary("https://a.example/")
    primary.load("https://a.example/two")
    for i in range(3):
      manager.request_auxiliary(f"https://p{i}.example/", target_frame_is_none=True)

    manager.close_all_auxiliary()

    assert manager.auxiliary == []
    assert primary.back_calls == 1
    assert primary.url == "https://a.example/"
    assert primary.loads == ["https://a.example/", "https://a.example/two"]

  def test_close_all_without_history_leaves_primary(self, manager):
    primary = manager.create_primary("https://a.example/")
    manager.request_auxiliary("https://p.example/", target_frame_is_none=True)

    manager.close_all_auxiliary()

    assert primary.back_calls == 0
    assert primary.url == "https://a.example/"

  def test_edge_swipe_goes_back_when_possible(self, manager):
    popup = manager.request_auxiliary("https://p.example/", target_frame_is_none=True)
    popup.load("https://p.example/two")

    popup.edge_swipe_handler()

    assert popup.back_calls == 1
    assert manager.auxiliary == [popup]

  def test_edge_swipe_on_top_popup_without_history_closes_stack(self, manager):
    manager.create_primary("https://a.example/")
    first = manager.request_auxiliary("https://p1.example/", target_frame_is_none=True)
    top = manager.request_auxiliary("https://p2.example/", target_frame_is_none=True)

    top.edge_swipe_handler()

    assert manager.auxiliary == []
    assert first.closed and top.closed

  def test_edge_swipe_on_lower_popup_is_ignored(self, manager):
    lower = manager.request_auxiliary("https://p1.example/", target_frame_is_none=True)
    manager.request_auxiliary("https://p2.example/", target_frame_is_none=True)

    lower.edge_swipe_handler()

    assert len(manager.auxiliary) == 2


class TestNavigationPolicy:
  @pytest.mark.parametrize(
    "url", ["https://a.example/", "http://a.example/", "about:blank", "data:text/html,hi"]
  )
  def test_in_surface_schemes_allowed(self, manager, url_opener, url):
    surface = manager.create_primary()

    assert manager.decide_navigation_policy(surface, url) == NavigationPolicy.ALLOW
    assert url_opener.opened == []

  @pytest.mark.parametrize(
    "url", ["mailto:a@example.com", "tel:+100", "itms-apps://apps.apple.com/app/id1"]
  )
  def test_other_schemes_handed_to_platform(self, manager, url_opener, url):
    surface = manager.create_primary()

    assert manager.decide_navigation_policy(surface, url) == NavigationPolicy.CANCEL
    assert url_opener.opened == [url]


class TestRedirects:
  def test_redirect_persists_cookies(self, manager, factory, storage):
    surface = manager.create_primary("https://a.example/")
    factory.cookie_store.set_cookie(
      CookieRecord(domain="a.example", name="sid", properties={"value": "1"})
    )

    manager.on_server_redirect(surface)

    assert storage.get(COOKIE_JAR_KEY) == {"a.example": {"sid": {"value": "1"}}}

  def test_redirect_storm_reloads_last_good(self, manager):
    surface = manager.create_primary("https://a.example/")
    manager.on_navigation_settled(surface, "https://a.example/")

    for _ in range(70):
      manager.on_server_redirect(surface)
    assert surface.stops == 0

    manager.on_server_redirect(surface)

    assert surface.stops == 1
    assert surface.loads[-1] == "https://a.example/"

  def test_guards_are_per_surface(self, manager):
    primary = manager.create_primary("https://a.example/")
    popup = manager.request_auxiliary("https://p.example/", target_frame_is_none=True)
    manager.on_navigation_settled(primary, "https://a.example/")
    manager.on_navigation_settled(popup, "https://p.example/")

    for _ in range(71):
      manager.on_server_redirect(popup)

    assert primary.stops == 0
    assert popup.stops == 1
    assert popup.loads == ["https://p.example/", "https://p.example/"]

  def test_too_many_redirects_failure_recovers(self, manager):
    surface = manager.create_primary("https://a.example/")
    manager.on_navigation_settled(surface, "https://a.example/ok")

    manager.on_provisional_failure(surface, ProvisionalErrorKind.TOO_MANY_REDIRECTS)

    assert surface.stops == 1
    assert surface.loads[-1] == "https://a.example/ok"

  def test_other_failures_do_nothing(self, manager):
    surface = manager.create_primary("https://a.example/")
    manager.on_navigation_settled(surface, "https://a.example/ok")

    manager.on_provisional_failure(surface, ProvisionalErrorKind.NETWORK)

    assert surface.stops == 0


class TestChallengesAndDialogs:
  def test_server_trust_accepted_under_permissive_policy(self, manager):
    assert (
      manager.handle_auth_challenge(ChallengeType.SERVER_TRUST)
      == ChallengeDisposition.USE_PRESENTED_CREDENTIAL
    )

  @pytest.mark.parametrize(
    "challenge", [ChallengeType.HTTP_BASIC, ChallengeType.CLIENT_CERTIFICATE, ChallengeType.OTHER]
  )
  def test_other_challenges_use_default_handling(self, manager, challenge):
    assert manager.handle_auth_challenge(challenge) == ChallengeDisposition.DEFAULT_HANDLING

  def test_strict_policy_defers_server_trust(self, factory, storage, preferences, url_opener):
    strict = SurfaceLifecycleManager(
      factory,
      CookieJar(storage),
      preferences,
      url_opener,
      tls_policy=TlsPolicy(accept_any_server_trust=False),
    )

    assert (
      strict.handle_auth_challenge(ChallengeType.SERVER_TRUST)
      == ChallengeDisposition.DEFAULT_HANDLING
    )

  def test_confirm_resolves_false(self, manager):
    assert manager.handle_script_dialog(ScriptDialogKind.CONFIRM, "Leave?") is False

  @pytest.mark.parametrize("kind", [ScriptDialogKind.ALERT, ScriptDialogKind.PROMPT])
  def test_other_dialogs_dismissed(self, manager, kind):
    assert manager.handle_script_dialog(kind, "hello") is None


class TestOverrideAndTeardown:
  def test_pending_override_loads_in_primary(self, manager, preferences):
    primary = manager.create_primary("https://a.example/")
    manager.request_auxiliary("https://p.example/", target_frame_is_none=True)
    preferences.set_override_url("https://promo.example/")

    assert manager.apply_pending_override() == "https://promo.example/"
    assert manager.auxiliary == []
    assert primary.url == "https://promo.example/"
    assert preferences.consume_override_url() is None

  def test_pending_override_creates_primary(self, manager, preferences):
    preferences.set_override_url("https://promo.example/")

    manager.apply_pending_override()

    assert manager.primary is not None
    assert manager.primary.loads == ["https://promo.example/"]

  def test_no_override(self, manager):
    assert manager.apply_pending_override() is None
    assert manager.primary is None

  def test_teardown_persists_and_closes(self, manager, factory, storage):
    primary = manager.create_primary("https://a.example/")
    popup = manager.request_auxiliary("https://p.example/", target_frame_is_none=True)
    factory.cookie_store.set_cookie(CookieRecord(domain="a.example", name="sid"))

    manager.teardown()

    assert primary.closed and popup.closed
    assert manager.primary is None
    assert storage.get(COOKIE_JAR_KEY) == {"a.example": {"sid": {}}}

  def test_teardown_does_not_step_primary_back(self, manager):
    primary = manager.create_primary("https://a.example/")
    primary.load("https://a.example/two")
    manager.request_auxiliary("https://p.example/", target_frame_is_none=True)

    manager.teardown()

    assert primary.back_calls == 0
    assert primary.history == ["https://a.example/", "https://a.example/two"]
    assert manager.auxiliary == []
