"""Run the StreakFarm API server"""
import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "streakfarm.api.server:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
