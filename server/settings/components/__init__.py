from pathlib import Path

from decouple import AutoConfig

# Build paths inside the project like this: BASE_DIR.joinpath('some')
BASE_DIR = Path(__file__).parent.parent.parent.parent

# Loading `.env` files from `config/`, falling back to the environment
config = AutoConfig(search_path=BASE_DIR.joinpath('config'))
