from linecut.auth.auth import AuthProvider, FirebaseTokenAuthProvider, StaticAuthProvider
from linecut.auth.context import UserContext

__all__ = ["AuthProvider", "FirebaseTokenAuthProvider", "StaticAuthProvider", "UserContext"]
