import pytest

from chronii.auth import InMemoryAuthProvider
from chronii.errors import AccountExistsError, AuthError

from conftest import EMAIL, PASSWORD


@pytest.fixture
def events(auth):
    seen = []
    auth.add_listener(seen.append)
    return seen


class TestInMemoryAuthProvider:
    def test_starts_signed_out(self, auth):
        assert auth.current_user is None
        assert not auth.is_authenticated
        assert not auth.is_fully_authenticated

    @pytest.mark.asyncio
    async def test_anonymous_session_is_not_fully_authenticated(self, auth, events):
        user = await auth.sign_in_anonymously()
        assert user.is_anonymous
        assert auth.is_authenticated and auth.is_anonymous
        assert not auth.is_fully_authenticated
        assert events == [user]

    @pytest.mark.asyncio
    async def test_register_sign_out_sign_in(self, auth, events):
        registered = await auth.register_with_email_and_password(" Ada@Example.com ", PASSWORD)
        assert registered.email == EMAIL
        assert auth.is_fully_authenticated

        await auth.sign_out()
        assert auth.current_user is None

        signed_in = await auth.sign_in_with_email_and_password(EMAIL, PASSWORD)
        assert signed_in.uid == registered.uid
        assert events == [registered, None, signed_in]

    @pytest.mark.asyncio
    async def test_rejections(self, auth):
        with pytest.raises(AuthError, match="Invalid email address"):
            await auth.register_with_email_and_password("not-an-email", PASSWORD)
        with pytest.raises(AuthError, match="at least"):
            await auth.register_with_email_and_password(EMAIL, "123")
        await auth.register_with_email_and_password(EMAIL, PASSWORD)
        with pytest.raises(AccountExistsError):
            await auth.register_with_email_and_password(EMAIL, PASSWORD)
        with pytest.raises(AuthError, match="Invalid email or password"):
            await auth.sign_in_with_email_and_password(EMAIL, "wrong-password")

    @pytest.mark.asyncio
    async def test_linking_keeps_the_anonymous_uid(self, auth):
        anonymous = await auth.sign_in_anonymously()
        linked = await auth.link_anonymous_account(EMAIL, PASSWORD)
        assert linked.uid == anonymous.uid
        assert auth.is_fully_authenticated

    @pytest.mark.asyncio
    async def test_linking_requires_an_anonymous_session(self, auth):
        with pytest.raises(AuthError):
            await auth.link_anonymous_account(EMAIL, PASSWORD)

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, caplog):
        auth = InMemoryAuthProvider()
        seen = []

        def broken(user):
            raise RuntimeError("boom")

        auth.add_listener(broken)
        auth.add_listener(seen.append)
        await auth.sign_in_anonymously()
        assert len(seen) == 1
        assert "Auth listener" in caplog.text

    @pytest.mark.asyncio
    async def test_sign_out_when_signed_out_is_silent(self, auth, events):
        await auth.sign_out()
        assert events == []
