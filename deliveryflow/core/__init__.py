"""Engine components: artifact store, stage executor, approval gate,
blue/green controller, orchestrator and alerting."""
