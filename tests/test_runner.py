"""Tests for the sequential run loop and its per-panel bookkeeping."""

from google.genai import errors

from conftest import FakeClient, make_image
from errors import AuthError, ContentPolicyError, MalformedResponseError, RetriesExhaustedError
from runner import ComicRun, run_comic


def _busy() -> errors.ServerError:
    return errors.ServerError(503, {"error": {"code": 503, "message": "Overloaded", "status": "UNAVAILABLE"}})


def test_successful_run_fills_every_panel(options, fake_client_factory, no_sleep) -> None:
    client = fake_client_factory(3, [make_image(), make_image(), make_image()])
    run = ComicRun(options, client, sleep=no_sleep.sleep)

    events = list(run_comic(run))

    assert [p.status for p in run.panels] == ["ready"] * 3
    assert run.finished and run.fatal_error is None
    assert events[0].percentage == 0
    assert events[-1].percentage == 100 and events[-1].total_panels == 3
    assert [e.percentage for e in events] == sorted(e.percentage for e in events)
    assert all("FACIAL IDENTITY LOCK" in p for p in client.image_prompts)


def test_panel_failure_is_recorded_and_siblings_continue(options, fake_client_factory, no_sleep) -> None:
    client = fake_client_factory(3, [make_image(), ContentPolicyError("blocked", "IMAGE_SAFETY"), make_image()])
    run = ComicRun(options, client, sleep=no_sleep.sleep)

    list(run_comic(run))

    assert [p.status for p in run.panels] == ["ready", "failed", "ready"]
    assert [e.panel_index for e in run.panel_errors] == [2]
    assert "blocked" in run.panels[1].error
    assert no_sleep.delays == []


def test_transient_errors_are_retried_per_panel(options, fake_client_factory, no_sleep) -> None:
    client = fake_client_factory(3, [_busy(), make_image(), _busy(), _busy(), _busy(), make_image()])
    run = ComicRun(options, client, sleep=no_sleep.sleep)

    list(run_comic(run))

    assert [p.status for p in run.panels] == ["ready", "failed", "ready"]
    assert isinstance(run.panel_errors[0].cause, RetriesExhaustedError)
    assert len(no_sleep.delays) == 3


def test_scene_failure_aborts_with_no_panels(options, no_sleep) -> None:
    run = ComicRun(options, FakeClient("not json", []), sleep=no_sleep.sleep)

    events = list(run_comic(run))

    assert isinstance(run.fatal_error, MalformedResponseError)
    assert run.panels == []
    assert len(events) == 1


def test_auth_error_during_images_aborts_run(options, fake_client_factory, no_sleep) -> None:
    client = fake_client_factory(3, [make_image(), AuthError("bad key")])
    run = ComicRun(options, client, sleep=no_sleep.sleep)

    list(run_comic(run))

    assert isinstance(run.fatal_error, AuthError)
    assert [p.status for p in run.panels] == ["ready", "failed", "pending"]
    assert run.stopped


def test_progress_label_names_the_panel_being_drawn(options, fake_client_factory, no_sleep) -> None:
    client = fake_client_factory(3, [make_image(), make_image(), make_image()])
    run = ComicRun(options, client, sleep=no_sleep.sleep)

    labels = [p.label for p in run_comic(run)]

    assert "Generating image for panel 2... (Panel 2 of 3)" in labels
    assert labels[0] == "Analyzing story & generating scene prompts..."
    assert not run.stopped
