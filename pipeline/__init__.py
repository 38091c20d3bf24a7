# pipeline/: analysis scripts for the sage-grouse nest models.
#
# Run scripts in order:
#   01_run_random_forests → covariate filtering, model selection, final RSF/SPF
#                           forests, diagnostic plots, cross-validation and
#                           significance tests; tables written to outputs/
