import sys

from shape_metrics.shape_comparison import main

sys.exit(main())
