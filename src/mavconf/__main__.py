from mavconf.cli import main

raise SystemExit(main())
