# Import main lazily to avoid circular dependencies
def __getattr__(name):
    if name == "main":
        from settleit.cli.main import main
        return main
    if name == "SettlementEngine":
        from settleit.engine import SettlementEngine
        return SettlementEngine
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
