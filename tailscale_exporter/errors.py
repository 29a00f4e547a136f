"""Error taxonomy for status fetching, collection and the address watchdog."""


class TailscaleError(RuntimeError):
    """Base class for all exporter errors."""
    pass


class FetchError(TailscaleError):
    """A status fetch did not produce a usable snapshot."""
    pass


class FetchTimeout(FetchError):
    """The status command did not finish within its deadline."""

    def __init__(self, timeout_s: float):
        super().__init__(f"tailscale status timed out after {timeout_s}s")
        self.timeout_s = timeout_s


class CommandFailure(FetchError):
    """The status command exited non-zero or wrote diagnostics."""

    def __init__(self, message: str, stderr: str = "", returncode=None):
        detail = f"{message}. stderr: {stderr.strip()}" if stderr.strip() else message
        super().__init__(detail)
        self.stderr = stderr
        self.returncode = returncode


class DecodeFailure(FetchError):
    """The status command's output could not be decoded."""

    def __init__(self, message: str, snippet: str = ""):
        super().__init__(f"{message}. stdout: {snippet!r}")
        self.snippet = snippet


class MissingAddress(FetchError):
    """A node in the snapshot reports no tailnet addresses."""

    def __init__(self, node: str):
        super().__init__(f"no tailnet addresses reported for node {node!r}")
        self.node = node


class FatalError(TailscaleError):
    """The process can no longer serve metrics under its bound address."""
    pass


class IdentityDrift(FatalError):
    """The host's tailnet address changed since startup."""

    def __init__(self, bound_address: str, observed_address: str):
        super().__init__(
            f"found new ip. was: {bound_address}, now: {observed_address}"
        )
        self.bound_address = bound_address
        self.observed_address = observed_address


class FetchExhaustion(FatalError):
    """Too many consecutive status fetches failed."""

    def __init__(self, failures: int, last_error: Exception):
        super().__init__(
            f"{failures} consecutive status fetches failed, last error: {last_error}"
        )
        self.failures = failures
        self.last_error = last_error
