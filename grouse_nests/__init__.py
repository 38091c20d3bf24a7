"""
grouse_nests: Random Forest models of greater sage-grouse nest-site
selection (RSF) and nest survival (SPF).

Contains the analysis workflow of the data package:
  - grouse_nests.data.loader           : observation table loading and validation
  - grouse_nests.features.covariates   : denylist and multicollinearity filtering
  - grouse_nests.features.targets      : RSF / SPF response datasets
  - grouse_nests.models.forest         : Random Forest fitting and its diagnostics
  - grouse_nests.models.selection      : covariate subset selection by importance threshold
  - grouse_nests.models.validation     : repeated holdout CV and permutation significance test
  - grouse_nests.diagnostics.plots     : convergence, partial dependence and importance figures
  - grouse_nests.workflow              : the end-to-end run
  - grouse_nests.config                : YAML config loading
  - grouse_nests.logging_utils         : project-wide logger factory
"""

__version__ = "1.0.0"
