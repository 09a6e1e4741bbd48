from tlk.cli import main

raise SystemExit(main())
