"""Project version constants.

These constants are embedded in the SDK user agent and in the CLI output so
that deployments can be traced back to a specific provisioner version.
"""

ENGINE_NAME: str = "lambdaprov"
ENGINE_VERSION: str = "0.1.0"

STATE_SCHEMA_VERSION: int = 1
