import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Azure AD app registration used for client-credential auth
    TENANT_ID = os.getenv("AZ_TENANT_ID", "")
    CLIENT_ID = os.getenv("AZ_CLIENT_ID", "")
    CLIENT_SECRET = os.getenv("AZ_CLIENT_SECRET", "")

    # Pre-acquired token, skips msal entirely when set
    ACCESS_TOKEN = os.getenv("GRAPH_ACCESS_TOKEN", "")

    GRAPH_BASE = os.getenv("GRAPH_BASE", "https://graph.microsoft.com/v1.0")
    GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]
    TIMEOUT = int(os.getenv("GRAPH_TIMEOUT", "120"))

    # Users bulk-loaded before the delegated pass
    PRECACHE_SIZE = int(os.getenv("PRECACHE_SIZE", "999"))

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.TENANT_ID}"


config = Config()
