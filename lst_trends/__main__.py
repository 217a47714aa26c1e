import sys

from lst_trends.main import main

sys.exit(main())
