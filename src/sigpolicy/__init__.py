"""
sigpolicy - Sandboxed policy programs for signing requests.

A signing service hands every signature request to a user-supplied policy
program before it signs. sigpolicy runs those programs:
- Inside a WebAssembly sandbox with no filesystem, network or clock access
- Under a fuel budget, so a program that never terminates is aborted
- In a fresh execution context per call, so calls cannot observe each other

It also ships the constraint library programs build on (architectures,
transaction parsing, ACLs) and a set of reference programs.

Example usage:
    $ sigpolicy evaluate length_check --message "hello world!"
    $ sigpolicy parse-tx 0xef01...
    $ sigpolicy check-acl 0xef01... --address 0x772b...
"""

__version__ = "0.1.0"
__author__ = "sigpolicy Contributors"

__all__ = [
    "__version__",
    "__author__",
]
