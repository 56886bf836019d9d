PROJECT_NAME = "Forkline"
API_V1_STR = "/api/v1"
