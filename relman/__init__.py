"""Release Manager (relman).

Reconciliation core for a small PaaS control plane:
 - expands a formation (process type -> command + quantity) into concrete jobs
 - rolls out new releases and tears the previous generation down after a grace period
 - scales individual process types up and down
 - joins tracked jobs with the scheduler's live view

The cluster scheduler and the job/process stores are collaborators; Docker and
SQLite backed implementations ship with the package.
"""
