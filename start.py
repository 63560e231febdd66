import os
import uvicorn

if __name__ == "__main__":
    # Railway sets the PORT environment variable
    port = int(os.environ.get("PORT", 8080))
    print(f"Starting server on port {port}")
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=port)
