"""Hard errors raised by the StrataLens core.

Expected invalid input (bad sample sizes, inconsistent filter drafts) is
reported as data on the owning entity; these exceptions are reserved for
malformed collaborator payloads and precondition violations.
"""


class StrataLensError(Exception):
    """Base class for StrataLens errors."""


class DatasetError(StrataLensError):
    """The dataset handed to the core is malformed (e.g. duplicate headers)."""


class MutationError(StrataLensError):
    """A structural edit cannot be applied to the working dataset."""


class SamplingBlockedError(StrataLensError):
    """A stratified draw was requested while a stratum holds a validation error."""
