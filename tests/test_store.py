import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from membership.core import utcnow
from membership.services.errors import ConflictError, NotFoundError, ServerError
from membership.services.store import SqlCredentialStore

from .conftest import make_account


def test_email_is_unique(store):
    first = make_account(store, "a@x.com")

    with pytest.raises(ConflictError):
        store.create_account(email="a@x.com", password_hash="other")

    assert store.find_by_email("a@x.com").id == first.id
    assert store.find_by_email("A@X.com ").id == first.id


def test_provider_user_id_is_unique(store):
    store.create_account(email="wx_1@wx.local", password_hash="h", wechat_openid="o-1")

    with pytest.raises(ConflictError):
        store.create_account(email="wx_2@wx.local", password_hash="h", wechat_openid="o-1")


def test_missing_rows_are_none(store):
    assert store.get_account(404) is None
    assert store.find_by_email("nobody@x.com") is None
    assert store.find_by_provider_identity("nope", "nope") is None


def test_new_account_defaults(store):
    account = make_account(store, "a@x.com")

    assert account.role == "normal"
    assert account.approved is False
    assert account.session_epoch == 0
    assert account.active_device_id is None


def test_record_login_bumps_epoch_and_replaces_device(store):
    account = make_account(store, "a@x.com")

    first = store.record_login(account.id, "D1")
    second = store.record_login(account.id, "D2")

    assert (first.session_epoch, first.active_device_id) == (1, "D1")
    assert (second.session_epoch, second.active_device_id) == (2, "D2")
    live = store.get_account(account.id)
    assert (live.session_epoch, live.active_device_id) == (2, "D2")


def test_clear_session_bumps_epoch_and_forgets_device(store):
    account = make_account(store, "a@x.com")
    store.record_login(account.id, "D1")

    cleared = store.clear_session(account.id)

    assert cleared.session_epoch == 2
    assert cleared.active_device_id is None


def test_record_login_for_missing_account(store):
    with pytest.raises(NotFoundError):
        store.record_login(999, "D1")


def test_set_approved_is_idempotent(store):
    account = make_account(store, "a@x.com")

    first = store.set_approved(account.id, approver_id=1)
    second = store.set_approved(account.id, approver_id=2)

    assert first.approved and second.approved
    assert second.approved_at == first.approved_at
    assert second.approved_by == 1


def test_set_approved_missing_account(store):
    with pytest.raises(NotFoundError):
        store.set_approved(999, approver_id=1)


def test_list_accounts_filters_and_orders_newest_first(store):
    a = make_account(store, "a@x.com")
    b = make_account(store, "b@x.com", approved=True)
    c = make_account(store, "c@x.com")

    assert [row.id for row in store.list_accounts()] == [c.id, b.id, a.id]
    assert [row.id for row in store.list_accounts(approved=False)] == [c.id, a.id]
    assert [row.id for row in store.list_accounts(approved=True)] == [b.id]


def test_provider_lookup_falls_back_to_union_id(store):
    account = store.create_account(
        email="wx_u@wx.local", password_hash="h", wechat_openid="o-web", wechat_unionid="u-1"
    )

    assert store.find_by_provider_identity("o-web").id == account.id
    assert store.find_by_provider_identity("o-mini", "u-1").id == account.id
    assert store.find_by_provider_identity("o-mini") is None


def test_refresh_profile_never_overwrites_with_empty_values(store):
    account = store.create_account(
        email="wx_o@wx.local",
        password_hash="h",
        wechat_openid="o-1",
        wechat_nickname="Old",
        wechat_avatar="https://img/old.png",
    )

    store.refresh_provider_profile(account.id, unionid="u-1", nickname=None, avatar=None)
    refreshed = store.get_account(account.id)
    assert refreshed.wechat_nickname == "Old"
    assert refreshed.wechat_avatar == "https://img/old.png"
    assert refreshed.wechat_unionid == "u-1"

    store.refresh_provider_profile(account.id, unionid="u-2", nickname="New")
    refreshed = store.get_account(account.id)
    assert refreshed.wechat_nickname == "New"
    assert refreshed.wechat_unionid == "u-1"


def test_link_state_is_consumed_once(store):
    store.save_link_state(state="s-1", provider="wechat", redirect_to="/members")

    consumed = store.consume_link_state("s-1", "wechat")

    assert consumed.redirect_to == "/members"
    assert store.consume_link_state("s-1", "wechat") is None


def test_link_state_is_bound_to_provider(store):
    store.save_link_state(state="s-1", provider="wechat", redirect_to="/")

    assert store.consume_link_state("s-1", "github") is None
    assert store.consume_link_state("s-1", "wechat") is not None


def test_purge_link_states_removes_only_old_rows(store):
    store.save_link_state(state="s-1", provider="wechat", redirect_to="/")

    assert store.purge_link_states(utcnow() - timedelta(minutes=5)) == 0
    assert store.purge_link_states(utcnow() + timedelta(seconds=1)) == 1
    assert store.consume_link_state("s-1", "wechat") is None


def _run_together(engine, count, work):
    """Run ``work(store, i)`` on ``count`` threads, each with its own session."""

    barrier = threading.Barrier(count)

    def _worker(i):
        with Session(engine) as session:
            store = SqlCredentialStore(session)
            barrier.wait()
            return work(store, i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_worker, range(count)))


def test_racing_consumers_get_the_state_once(file_engine):
    with Session(file_engine) as session:
        SqlCredentialStore(session).save_link_state(
            state="s-race", provider="wechat", redirect_to="/"
        )

    results = _run_together(
        file_engine, 8, lambda store, _: store.consume_link_state("s-race", "wechat")
    )

    assert len([saved for saved in results if saved is not None]) == 1


def test_concurrent_logins_never_lose_an_epoch(file_engine):
    with Session(file_engine) as session:
        account_id = make_account(SqlCredentialStore(session), "a@x.com").id

    def _login(store, i):
        account = store.record_login(account_id, f"D{i}")
        return account.session_epoch, account.active_device_id

    results = _run_together(file_engine, 20, _login)

    assert sorted(epoch for epoch, _ in results) == list(range(1, 21))
    winner = dict(results)[20]
    with Session(file_engine) as session:
        live = SqlCredentialStore(session).get_account(account_id)
    assert (live.session_epoch, live.active_device_id) == (20, winner)


def test_failed_write_is_server_error(sql_store, monkeypatch):
    account = make_account(sql_store, "a@x.com")

    def _fail():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(sql_store.session, "commit", _fail)

    with pytest.raises(ServerError) as excinfo:
        sql_store.record_login(account.id, "D1")
    with pytest.raises(ServerError):
        sql_store.create_account(email="b@x.com", password_hash="h")

    assert excinfo.value.status_code == 500
    assert excinfo.value.client_message == "Server error"
