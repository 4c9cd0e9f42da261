import sys
from dotenv import load_dotenv

load_dotenv(override=True)

from connector.config import load_config
from connector.agent import run_agent

def main():
    config = load_config()
    sys.exit(run_agent(config))

if __name__ == "__main__":
    main()
