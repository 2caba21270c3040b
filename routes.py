# Client-side routes and the session guard.
HOME = "/"
LOGIN = "/login"
SIGNUP = "/signup"
MY_DIARY = "/my-diary"

ROUTES = (HOME, LOGIN, SIGNUP, MY_DIARY)
PROTECTED = frozenset([MY_DIARY])
STATE_KEY = "route"


def resolve(route: str | None, authenticated: bool) -> str:
    """Route to actually render: unknown routes go home, protected ones need a session."""
    if route not in ROUTES:
        return HOME
    if route in PROTECTED and not authenticated:
        return LOGIN
    return route


def current(state) -> str:
    return state.get(STATE_KEY) or HOME


def navigate(state, route: str) -> None:
    state[STATE_KEY] = route if route in ROUTES else HOME
