"""Start backend API locally with proper configuration"""
import os
import sys
import traceback

import uvicorn

# Set environment variables
os.environ['DEPLOYMENT_MODE'] = 'local'
os.environ['PYTHONPATH'] = '.'
os.environ['PYTHONUTF8'] = '1'

print("Starting Statistics Portal Data Core (Local Mode)...")
print("-" * 50)

try:
    # Import and verify config
    from statportal.config import settings
    print("Configuration loaded")
    print(f"  Deployment mode: {settings.get('DEPLOYMENT_MODE', 'local')}")
    print(f"  Database: {settings.get('DATABASE_URL', '').split('@')[-1][:50]}")
    print(f"  JWT secret: {'configured' if settings.get('JWT_SECRET_KEY') else 'MISSING (all requests will be 401)'}")
    print(f"  Bulk import policy: {settings.get('BULK_IMPORT_SUCCESS_POLICY')}")

    from statportal.main import app
    print("FastAPI app imported")

    print("\nStarting server on http://localhost:8000")
    print("API documentation at: http://localhost:8000/docs")
    print("-" * 50)

    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)

except KeyboardInterrupt:
    print("\nServer stopped by user")
except Exception as e:
    print(f"\nFailed to start server: {e}")
    traceback.print_exc()
    sys.exit(1)
