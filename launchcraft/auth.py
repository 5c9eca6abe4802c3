"""Authentication sessions given to the game when starting it. No login flow is
implemented here, sessions are built from already known credentials.
"""


class AuthSession:
    """An abstract class for defining authentication sessions. These sessions are then
    provided as an argument for starting the game. They provide all information such as
    access player's token, username or UUID.

    The class variable `user_type` is an information sent through command line to the
    game, and `offline` tells if the session identifies a player at all, in which case
    the identity arguments are not given to the game.
    """

    user_type: str
    offline = False

    def __init__(self, *, demo: bool = False) -> None:
        self.access_token = ""
        self.username = ""
        self.uuid = ""
        self.client_id = ""
        self.demo = demo

    def format_token_argument(self, legacy: bool) -> str:
        """Format the token for the game's command line. Legacy versions uses the format
        `token:{access_token}:{uuid}` and modern versions uses `{access_token}`.

        :param legacy: True to enable legacy formatting, used by older versions.
        :return: The formatted token.
        """
        return f"token:{self.access_token}:{self.uuid}" if legacy else self.access_token

    def get_xuid(self) -> str:
        """Getter specific to Microsoft, but common to auth sessions because it's used for
        Minecraft's command line arguments.
        """
        return ""


class OfflineAuthSession(AuthSession):
    """Offline session, this is quite contradictory but it's actually useful to simplify
    the start logic. The player has no identity, the game will pick one itself.
    """

    user_type = "legacy"
    offline = True

    def format_token_argument(self, legacy: bool) -> str:
        return ""

    def __repr__(self) -> str:
        return f"<OfflineAuthSession demo={self.demo}>"


class OnlineAuthSession(AuthSession):
    """An authenticated session, built from the player's username, UUID and access token
    obtained elsewhere.
    """

    user_type = "msa"

    def __init__(self, username: str, access_token: str, uuid: str, *,
        client_id: str = "",
        xuid: str = "",
        demo: bool = False
    ) -> None:
        super().__init__(demo=demo)
        self.username = username
        self.access_token = access_token
        self.uuid = uuid
        self.client_id = client_id
        self.xuid = xuid

    def get_xuid(self) -> str:
        return self.xuid

    def __repr__(self) -> str:
        return f"<OnlineAuthSession {self.username} demo={self.demo}>"
