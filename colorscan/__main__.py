from colorscan.cli import main

raise SystemExit(main())
