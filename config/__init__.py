# config package: authoritative source for stance-analysis configuration.
#
# Sub-modules:
#   api_config.py   : backend endpoints, authentication, model identifiers,
#                     engine registry and environment variable names
#   model_params.py : generation parameters, default engine configs,
#                     retry schedule, mock-engine and token-estimate constants
