# Exceptions raised while provisioning the local certificate chain.
# OSError / ValueError from the filesystem or cryptography are not wrapped, they propagate as-is.


class LocalCertsError(Exception):
    """Base class for everything this package raises on purpose."""


class ArchiveError(LocalCertsError):
    """A persisted PKCS#12 archive could not be read or has no key/cert in it."""


class AuthorityExpiredError(LocalCertsError):
    """A persisted root or intermediate is past its not-after date."""


class ChainMismatchError(LocalCertsError):
    """The persisted intermediate was not issued by the persisted root."""


class IdentityError(LocalCertsError):
    """A certificate subject does not follow the instance identity convention."""
