from typing import Literal


existing_providers = Literal["aws", "gcp", "inmemory"]
