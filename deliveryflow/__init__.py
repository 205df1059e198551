"""deliveryflow: deployment-pipeline orchestration engine.

Sequences pipeline stages, gates promotion behind test results and manual
approval, runs blue/green production cutovers with automated rollback and
routes failure signals to alerting channels.
"""

__version__ = "0.1.0"
