import os

# main builds a module-level app on import; keep it off MongoDB
os.environ["DATABASE_URL"] = "memory://"
