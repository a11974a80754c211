class ConfigError(ValueError):
    """
    Brief: Fatal configuration problem detected at startup.

    Inputs:
      - message: Human-readable description naming the offending file/field.
    Outputs:
      - Exception instance.

    Raised for missing or unparseable config files, schema violations, an
    empty ``views`` list, malformed CIDR entries and malformed host:port
    values. main() reports it and exits non-zero before any listener binds.
    """

    pass
